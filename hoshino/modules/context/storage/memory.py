"""
内存存储实现
"""

import asyncio
from typing import Dict, List, Optional

from hoshino.modules.context.models import ConversationInfo, Message
from hoshino.modules.context.storage import Storage
from hoshino.modules.logging import get_logger


class MemoryStorage(Storage):
    """内存存储实现"""

    def __init__(
        self,
        max_messages_per_conversation: int = 1000,
        max_conversations: int = 100,
    ):
        self.max_messages_per_conversation = max_messages_per_conversation
        self.max_conversations = max_conversations
        self._messages: Dict[str, List[Message]] = {}
        self._conversation_info: Dict[str, ConversationInfo] = {}
        self._lock = asyncio.Lock()
        self.logger = get_logger("MemoryStorage")

    def _ensure_conversation_no_lock(self, conversation_id: str) -> ConversationInfo:
        """内部方法：获取或创建会话（必须在持有锁时调用）"""
        info = self._conversation_info.get(conversation_id)
        if info is not None:
            return info

        if len(self._conversation_info) >= self.max_conversations:
            oldest = min(self._conversation_info.values(), key=lambda c: c.last_activity)
            self._delete_conversation_no_lock(oldest.conversation_id)
            self.logger.debug(f"达到会话数限制，删除最久未活跃的会话: {oldest.conversation_id}")

        self._messages[conversation_id] = []
        info = ConversationInfo(conversation_id=conversation_id)
        self._conversation_info[conversation_id] = info
        return info

    async def add_message(self, message: Message) -> None:
        async with self._lock:
            info = self._ensure_conversation_no_lock(message.conversation_id)
            messages = self._messages[message.conversation_id]

            if len(messages) >= self.max_messages_per_conversation:
                removed = messages.pop(0)
                self.logger.debug(
                    f"会话 {message.conversation_id} 达到消息数限制，删除最旧消息: {removed.message_id}"
                )

            messages.append(message)
            info.message_count = len(messages)

    async def get_messages(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        before_timestamp: Optional[int] = None,
    ) -> List[Message]:
        async with self._lock:
            messages = list(self._messages.get(conversation_id, []))

            if before_timestamp is not None:
                messages = [m for m in messages if m.timestamp < before_timestamp]

            if limit is not None:
                messages = messages[-limit:] if limit > 0 else []

            return messages

    async def delete_messages(self, conversation_id: str, message_ids: List[str]) -> int:
        async with self._lock:
            messages = self._messages.get(conversation_id)
            if not messages:
                return 0

            targets = set(message_ids)
            kept = [m for m in messages if m.message_id not in targets]
            removed = len(messages) - len(kept)
            self._messages[conversation_id] = kept
            self._conversation_info[conversation_id].message_count = len(kept)
            return removed

    async def update_conversation(self, conversation_id: str, last_activity: int) -> None:
        async with self._lock:
            info = self._ensure_conversation_no_lock(conversation_id)
            info.last_activity = last_activity

    async def get_conversation_info(self, conversation_id: str) -> Optional[ConversationInfo]:
        async with self._lock:
            return self._conversation_info.get(conversation_id)

    async def list_conversations(self, limit: Optional[int] = None) -> List[ConversationInfo]:
        async with self._lock:
            conversations = sorted(self._conversation_info.values(), key=lambda c: c.last_activity, reverse=True)
            if limit is not None:
                conversations = conversations[:limit]
            return conversations

    async def delete_conversation(self, conversation_id: str) -> None:
        async with self._lock:
            self._delete_conversation_no_lock(conversation_id)

    def _delete_conversation_no_lock(self, conversation_id: str) -> None:
        self._messages.pop(conversation_id, None)
        self._conversation_info.pop(conversation_id, None)
        self.logger.debug(f"已删除会话: {conversation_id}")

    async def cleanup(self) -> None:
        async with self._lock:
            self._messages.clear()
            self._conversation_info.clear()
