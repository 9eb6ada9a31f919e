"""
投递队列的外部协作者

- Notifier: 系统通知
- PlaybackController: 音乐播放器
- VisibilityProbe: 界面是否可见（不可见时跳过投递间隔）

默认实现通过 EventBus 发布事件，由前端（控制台、窗口等）订阅处理。
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from hoshino.modules.events import CoreEvents, EventBus
from hoshino.modules.events.payloads import NotificationRequestedPayload, SkipTrackPayload
from hoshino.modules.logging import get_logger

VisibilityProbe = Callable[[], bool]


def always_visible() -> bool:
    return True


class Notifier(ABC):
    """系统通知接口"""

    @abstractmethod
    async def notify(self, title: str, body: str, silent: bool = False, tag: str = "") -> None:
        """发送一条通知"""
        pass


class PlaybackController(ABC):
    """播放器控制接口"""

    @abstractmethod
    async def skip_to_next_track(self, conversation_id: Optional[str] = None) -> None:
        """切到下一首"""
        pass


class EventBusNotifier(Notifier):
    """把通知请求发布为 messenger.notification.requested 事件"""

    def __init__(self, event_bus: EventBus, source: str = "DeliveryQueue"):
        self.event_bus = event_bus
        self.source = source
        self.logger = get_logger("EventBusNotifier")

    async def notify(self, title: str, body: str, silent: bool = False, tag: str = "") -> None:
        self.logger.debug(f"请求通知: {title} - {body[:30]} (静默: {silent})")
        await self.event_bus.emit(
            CoreEvents.MESSENGER_NOTIFICATION_REQUESTED,
            NotificationRequestedPayload(title=title, body=body, silent=silent, tag=tag),
            source=self.source,
        )


class EventBusPlaybackController(PlaybackController):
    """把切歌请求发布为 player.control.skip 事件"""

    def __init__(self, event_bus: EventBus, source: str = "DeliveryQueue"):
        self.event_bus = event_bus
        self.source = source

    async def skip_to_next_track(self, conversation_id: Optional[str] = None) -> None:
        await self.event_bus.emit(
            CoreEvents.PLAYER_SKIP_TRACK,
            SkipTrackPayload(conversation_id=conversation_id),
            source=self.source,
        )
