"""
存储后端接口
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from hoshino.modules.context.models import ConversationInfo, Message


class Storage(ABC):
    """消息存储抽象基类"""

    @abstractmethod
    async def add_message(self, message: Message) -> None:
        """追加消息"""

    @abstractmethod
    async def get_messages(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        before_timestamp: Optional[int] = None,
    ) -> List[Message]:
        """按时间正序返回消息"""

    @abstractmethod
    async def delete_messages(self, conversation_id: str, message_ids: List[str]) -> int:
        """删除指定消息，返回删除数量"""

    @abstractmethod
    async def update_conversation(self, conversation_id: str, last_activity: int) -> None:
        """更新会话最后活跃时间"""

    @abstractmethod
    async def get_conversation_info(self, conversation_id: str) -> Optional[ConversationInfo]:
        """获取会话信息"""

    @abstractmethod
    async def list_conversations(self, limit: Optional[int] = None) -> List[ConversationInfo]:
        """按最后活跃时间倒序列出会话"""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> None:
        """删除会话"""

    @abstractmethod
    async def cleanup(self) -> None:
        """释放资源"""


__all__ = ["Storage"]
