"""
事件注册表

维护事件名到 Payload 类型的映射，供 EventBus 校验使用。
"""

from typing import Dict, Optional, Type

from pydantic import BaseModel

from hoshino.modules.logging import get_logger

CORE_EVENT_PREFIXES = ("messenger.", "player.", "core.")


class EventRegistry:
    """事件类型注册表"""

    _core_events: Dict[str, Type[BaseModel]] = {}

    _logger = get_logger("EventRegistry")

    @classmethod
    def register_core_event(cls, event_name: str, model: Type[BaseModel]) -> None:
        """
        注册核心事件

        Args:
            event_name: 事件名称（如 "messenger.message.delivered"）
            model: Pydantic Model 类型

        Raises:
            ValueError: 事件名不符合命名规范
        """
        if not event_name.startswith(CORE_EVENT_PREFIXES):
            raise ValueError(f"核心事件名必须以 {CORE_EVENT_PREFIXES} 之一开头，收到: {event_name}")

        existing_model = cls._core_events.get(event_name)
        if existing_model is not None and existing_model is not model:
            cls._logger.warning(
                f"核心事件已存在，将覆盖: {event_name} (旧: {existing_model.__name__}, 新: {model.__name__})"
            )

        cls._core_events[event_name] = model
        cls._logger.debug(f"注册核心事件: {event_name} -> {model.__name__}")

    @classmethod
    def unregister_core_event(cls, event_name: str) -> bool:
        """移除核心事件注册，返回是否成功移除"""
        if cls._core_events.pop(event_name, None) is not None:
            cls._logger.debug(f"移除核心事件: {event_name}")
            return True
        return False

    @classmethod
    def get(cls, event_name: str) -> Optional[Type[BaseModel]]:
        """获取事件的 Model 类型，未注册返回 None"""
        return cls._core_events.get(event_name)

    @classmethod
    def is_registered(cls, event_name: str) -> bool:
        return event_name in cls._core_events

    @classmethod
    def list_all_events(cls) -> Dict[str, Type[BaseModel]]:
        return cls._core_events.copy()


def register_core_events() -> None:
    """注册所有核心事件名与 Payload 类型的映射"""
    from hoshino.modules.events.names import CoreEvents
    from hoshino.modules.events.payloads import (
        MessageDeliveredPayload,
        NotificationRequestedPayload,
        SkipTrackPayload,
        TurnFailedPayload,
        TypingChangedPayload,
    )

    EventRegistry.register_core_event(CoreEvents.MESSENGER_TYPING_CHANGED, TypingChangedPayload)
    EventRegistry.register_core_event(CoreEvents.MESSENGER_MESSAGE_DELIVERED, MessageDeliveredPayload)
    EventRegistry.register_core_event(CoreEvents.MESSENGER_TURN_FAILED, TurnFailedPayload)
    EventRegistry.register_core_event(CoreEvents.MESSENGER_NOTIFICATION_REQUESTED, NotificationRequestedPayload)
    EventRegistry.register_core_event(CoreEvents.PLAYER_SKIP_TRACK, SkipTrackPayload)
