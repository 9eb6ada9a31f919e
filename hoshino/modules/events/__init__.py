"""
Hoshino 事件系统模块
"""

from .event_bus import EventBus, EventStats
from .names import CoreEvents
from .registry import EventRegistry, register_core_events

__all__ = [
    "CoreEvents",
    "EventBus",
    "EventRegistry",
    "EventStats",
    "register_core_events",
]
