"""
事件 Payload 模块

为 EventBus 事件提供类型安全的 Pydantic Payload 定义。

使用示例:
    from hoshino.modules.events.names import CoreEvents
    from hoshino.modules.events.payloads import TypingChangedPayload

    await event_bus.emit(
        CoreEvents.MESSENGER_TYPING_CHANGED,
        TypingChangedPayload(conversation_id="c1", typing=True),
        source="SessionOrchestrator",
    )
"""

from .base import BasePayload
from .messenger import (
    MessageDeliveredPayload,
    NotificationRequestedPayload,
    SkipTrackPayload,
    TurnFailedPayload,
    TypingChangedPayload,
)

__all__ = [
    "BasePayload",
    "TypingChangedPayload",
    "MessageDeliveredPayload",
    "TurnFailedPayload",
    "NotificationRequestedPayload",
    "SkipTrackPayload",
]
