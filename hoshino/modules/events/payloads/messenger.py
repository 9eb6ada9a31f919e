"""
Messenger 相关 Payload
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import BasePayload


class TypingChangedPayload(BasePayload):
    """正在输入状态变化"""

    conversation_id: str = Field(..., description="会话ID")
    typing: bool = Field(..., description="是否正在输入")


class MessageDeliveredPayload(BasePayload):
    """消息已持久化"""

    conversation_id: str = Field(..., description="会话ID")
    message_id: str = Field(..., description="消息ID")
    msg_type: str = Field(..., description="消息类型")
    content: str = Field(..., description="显示内容")
    translation: Optional[str] = Field(default=None, description="翻译")
    timestamp: int = Field(..., description="毫秒时间戳")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="类型相关的元数据")

    def _debug_fields(self) -> List[str]:
        return ["conversation_id", "msg_type", "content"]


class TurnFailedPayload(BasePayload):
    """回合失败（传输错误），以原始错误文本提示用户"""

    conversation_id: str = Field(..., description="会话ID")
    error: str = Field(..., description="原始错误文本")


class NotificationRequestedPayload(BasePayload):
    """请求发送系统通知"""

    title: str = Field(..., description="通知标题")
    body: str = Field(..., description="通知正文")
    silent: bool = Field(default=False, description="静默通知")
    tag: str = Field(..., description="通知分组标签")


class SkipTrackPayload(BasePayload):
    """请求播放器切到下一首"""

    conversation_id: Optional[str] = Field(default=None, description="触发指令的会话ID")
