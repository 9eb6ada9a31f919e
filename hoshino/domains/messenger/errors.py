"""
Messenger 异常

TransportError / StreamCancelledError 来自 LLM 模块，这里一并导出。
"""

from hoshino.modules.llm.errors import StreamCancelledError, TransportError


class MessengerError(Exception):
    """Messenger 异常基类"""


class SessionBusyError(MessengerError):
    """同一会话已有进行中的回合"""

    def __init__(self, conversation_id: str):
        super().__init__(f"会话 {conversation_id} 已有进行中的回合")
        self.conversation_id = conversation_id


__all__ = [
    "MessengerError",
    "SessionBusyError",
    "StreamCancelledError",
    "TransportError",
]
