"""
ContextService - 消息持久化服务

提供消息追加/查询、会话活跃时间更新，以及同一会话内严格递增的时间戳分配。

生命周期：
    __init__() -> initialize() -> [使用 API] -> cleanup()
"""

import time
from typing import Any, Dict, List, Optional

from hoshino.modules.context.config import ContextServiceConfig
from hoshino.modules.context.models import (
    ConversationInfo,
    Message,
    MessageMetadata,
    MessageRole,
    MessageType,
    TextMetadata,
)
from hoshino.modules.context.storage import Storage
from hoshino.modules.context.storage.memory import MemoryStorage
from hoshino.modules.logging import get_logger


class PersistenceError(RuntimeError):
    """存储写入失败"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class ContextService:
    """
    上下文服务 - 消息存储

    使用示例：
        ```python
        context_service = ContextService()
        await context_service.initialize()

        await context_service.add_message("c1", MessageRole.USER, "你好")
        history = await context_service.get_history("c1", limit=20)

        await context_service.cleanup()
        ```
    """

    def __init__(self, config: Optional[ContextServiceConfig] = None, storage: Optional[Storage] = None):
        self.config = config or ContextServiceConfig()
        self.logger = get_logger("ContextService")
        self._storage: Optional[Storage] = storage
        self._last_timestamps: Dict[str, int] = {}
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            self.logger.warning("ContextService 已经初始化，跳过重复初始化")
            return

        if self._storage is None:
            self._storage = MemoryStorage(
                max_messages_per_conversation=self.config.max_messages_per_conversation,
                max_conversations=self.config.max_conversations,
            )

        self._initialized = True
        self.logger.info(
            f"ContextService 初始化完成 (存储: {type(self._storage).__name__}, "
            f"最大消息数: {self.config.max_messages_per_conversation}, "
            f"最大会话数: {self.config.max_conversations})"
        )

    def _check_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ContextService 未初始化，请先调用 initialize()")

    def next_timestamp(self, conversation_id: str) -> int:
        """
        分配下一个时间戳（毫秒）

        同一会话内严格递增：同一毫秒内的多次分配依次加一。
        """
        last = self._last_timestamps.get(conversation_id, 0)
        timestamp = max(_now_ms(), last + 1)
        self._last_timestamps[conversation_id] = timestamp
        return timestamp

    async def append(self, message: Message) -> Message:
        """
        追加一条消息

        Raises:
            RuntimeError: 服务未初始化
            PersistenceError: 存储写入失败
        """
        self._check_initialized()

        try:
            await self._storage.add_message(message)
        except Exception as e:
            raise PersistenceError(f"写入消息失败 (会话: {message.conversation_id}): {e}") from e

        last = self._last_timestamps.get(message.conversation_id, 0)
        self._last_timestamps[message.conversation_id] = max(last, message.timestamp)

        self.logger.debug(
            f"追加消息到会话 {message.conversation_id}: {message.role.value}/{message.msg_type} - {message.content[:50]}"
        )
        return message

    async def add_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        msg_type: str = MessageType.TEXT.value,
        metadata: Optional[MessageMetadata] = None,
    ) -> Message:
        """构建并追加一条消息（时间戳自动分配）"""
        self._check_initialized()
        message = Message(
            conversation_id=conversation_id,
            role=role,
            msg_type=msg_type,
            content=content,
            metadata=metadata or TextMetadata(),
            timestamp=self.next_timestamp(conversation_id),
        )
        return await self.append(message)

    async def update_conversation(self, conversation_id: str, last_activity: Optional[int] = None) -> None:
        """更新会话最后活跃时间（默认当前时间）"""
        self._check_initialized()
        await self._storage.update_conversation(conversation_id, last_activity or _now_ms())

    async def get_history(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        before_timestamp: Optional[int] = None,
    ) -> List[Message]:
        """
        获取会话历史（按时间正序）

        Args:
            conversation_id: 会话ID
            limit: 最多返回最近的多少条（None 表示不限制）
            before_timestamp: 只返回此时间戳之前的消息
        """
        self._check_initialized()
        messages = await self._storage.get_messages(conversation_id, limit, before_timestamp)
        self.logger.debug(f"获取会话 {conversation_id} 的历史，共 {len(messages)} 条消息")
        return messages

    async def delete_messages(self, conversation_id: str, message_ids: List[str]) -> int:
        self._check_initialized()
        removed = await self._storage.delete_messages(conversation_id, message_ids)
        self.logger.debug(f"从会话 {conversation_id} 删除 {removed} 条消息")
        return removed

    async def delete_last_assistant_turn(self, conversation_id: str) -> int:
        """
        删除最后一条用户消息之后的所有助手消息（重新生成前调用）

        没有用户消息时删除全部助手消息。

        Returns:
            删除的消息数量
        """
        self._check_initialized()
        messages = await self._storage.get_messages(conversation_id)

        last_user_index = -1
        for index, message in enumerate(messages):
            if message.role == MessageRole.USER:
                last_user_index = index

        targets = [m.message_id for m in messages[last_user_index + 1 :] if m.role == MessageRole.ASSISTANT]
        if not targets:
            return 0

        removed = await self._storage.delete_messages(conversation_id, targets)
        self.logger.info(f"已删除会话 {conversation_id} 最后一轮的 {removed} 条助手消息")
        return removed

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationInfo]:
        self._check_initialized()
        return await self._storage.get_conversation_info(conversation_id)

    async def list_conversations(self, limit: Optional[int] = None) -> List[ConversationInfo]:
        self._check_initialized()
        return await self._storage.list_conversations(limit)

    async def delete_conversation(self, conversation_id: str) -> None:
        self._check_initialized()
        await self._storage.delete_conversation(conversation_id)
        self._last_timestamps.pop(conversation_id, None)
        self.logger.info(f"已删除会话 {conversation_id}")

    async def cleanup(self) -> None:
        if self._storage:
            await self._storage.cleanup()
        self._last_timestamps.clear()
        self._initialized = False
        self.logger.info("ContextService 已清理")

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "storage_type": type(self._storage).__name__ if self._storage else None,
            "max_messages_per_conversation": self.config.max_messages_per_conversation,
            "max_conversations": self.config.max_conversations,
        }
