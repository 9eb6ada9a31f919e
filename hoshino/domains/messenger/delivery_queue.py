"""
DeliveryQueue - 单会话的消息投递队列

把分类后的消息按入队顺序逐条持久化、发通知、执行副作用，
两条之间等待 pacing_delay 秒（界面不可见时不等待）。

同一时刻最多只有一个 drain 循环在运行；drain 运行期间入队的消息
由正在运行的循环接着处理。取消令牌在每次写入前检查，被设置后
剩余的消息全部丢弃。
"""

import asyncio
import re
from collections import deque
from typing import Deque, Optional

from hoshino.domains.messenger.classifier import (
    ClassifiedMessage,
    GiftMessage,
    ImageMessage,
    RedPacketMessage,
    SideEffectMessage,
    StickerMessage,
    TextMessage,
    TransferMessage,
)
from hoshino.domains.messenger.collaborators import Notifier, PlaybackController, VisibilityProbe, always_visible
from hoshino.modules.config import NotificationConfig
from hoshino.modules.context import (
    ContextService,
    GiftMetadata,
    ImageMetadata,
    Message,
    MessageRole,
    MessageType,
    PersistenceError,
    RedPacketMetadata,
    StickerMetadata,
    TextMetadata,
    TransferMetadata,
)
from hoshino.modules.events import CoreEvents, EventBus
from hoshino.modules.events.payloads import MessageDeliveredPayload
from hoshino.modules.logging import get_logger

LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def display_amount(amount: str) -> str:
    """取金额开头的数字部分用于摘要显示，取不到时为 0"""
    match = LEADING_NUMBER.match(amount)
    if match is None:
        return "0"
    value = float(match.group(0))
    return str(int(value)) if value.is_integer() else str(value)


def to_message(item: ClassifiedMessage, conversation_id: str, timestamp: int) -> Optional[Message]:
    """把分类结果转换为待持久化的助手消息；副作用和丢弃项返回 None"""
    if isinstance(item, TextMessage):
        msg_type, content = MessageType.TEXT, item.content
        metadata = TextMetadata(translation=item.translation)
    elif isinstance(item, StickerMessage):
        msg_type, content = MessageType.STICKER, item.name
        metadata = StickerMetadata(translation=item.translation)
    elif isinstance(item, RedPacketMessage):
        msg_type, content = MessageType.REDPACKET, f"红包: {display_amount(item.amount)}"
        metadata = RedPacketMetadata(amount=item.amount, note=item.note, translation=item.translation)
    elif isinstance(item, TransferMessage):
        msg_type, content = MessageType.TRANSFER, f"转账: {display_amount(item.amount)}"
        metadata = TransferMetadata(amount=item.amount, note=item.note, translation=item.translation)
    elif isinstance(item, GiftMessage):
        msg_type, content = MessageType.GIFT, item.name
        metadata = GiftMetadata(gift_name=item.name, translation=item.translation)
    elif isinstance(item, ImageMessage):
        msg_type, content = MessageType.IMAGE, item.description
        metadata = ImageMetadata(description=item.description, translation=item.translation)
    else:
        return None

    return Message(
        conversation_id=conversation_id,
        role=MessageRole.ASSISTANT,
        msg_type=msg_type,
        content=content,
        metadata=metadata,
        timestamp=timestamp,
    )


class DeliveryQueue:
    """
    单会话投递队列

    使用示例:
        queue = DeliveryQueue("c1", context_service, notifier, playback, title="Hoshino")
        queue.enqueue(classify("你好"))
        await queue.wait_idle()
    """

    def __init__(
        self,
        conversation_id: str,
        context_service: ContextService,
        notifier: Notifier,
        playback: PlaybackController,
        *,
        title: str,
        notification_config: Optional[NotificationConfig] = None,
        event_bus: Optional[EventBus] = None,
        pacing_delay: float = 0.8,
        is_visible: VisibilityProbe = always_visible,
        stop_event: Optional[asyncio.Event] = None,
    ):
        self.conversation_id = conversation_id
        self.context_service = context_service
        self.notifier = notifier
        self.playback = playback
        self.title = title
        self.notification_config = notification_config or NotificationConfig()
        self.event_bus = event_bus
        self.pacing_delay = pacing_delay
        self.is_visible = is_visible
        self.stop_event = stop_event or asyncio.Event()

        self.logger = get_logger("DeliveryQueue")

        self._pending: Deque[ClassifiedMessage] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self.delivered_count = 0

    @property
    def is_idle(self) -> bool:
        return not self._pending and not self._draining

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, item: ClassifiedMessage) -> None:
        """入队；没有运行中的 drain 时启动一个"""
        if item.kind == "none":
            return
        self._pending.append(item)
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self.drain())

    async def wait_idle(self) -> None:
        """等待当前 drain 循环结束；等待方被取消不会中断投递"""
        if self._drain_task is not None:
            await asyncio.shield(self._drain_task)

    async def drain(self) -> None:
        """按顺序投递所有待处理消息；已有循环在运行时直接返回"""
        if self._draining:
            return
        self._draining = True
        try:
            while self._pending:
                if self.cancelled:
                    self.logger.info(f"会话 {self.conversation_id} 已取消，丢弃 {len(self._pending)} 条待投递消息")
                    self._pending.clear()
                    break
                item = self._pending.popleft()
                await self._deliver(item)
        finally:
            self._draining = False

    async def _deliver(self, item: ClassifiedMessage) -> None:
        if isinstance(item, SideEffectMessage):
            await self._fire_side_effect(item.effect)
            return

        if isinstance(item, TextMessage) and item.side_effect:
            await self._fire_side_effect(item.side_effect)

        # 副作用期间可能被取消
        if self.cancelled:
            return

        message = to_message(item, self.conversation_id, self.context_service.next_timestamp(self.conversation_id))
        if message is None:
            return

        try:
            await self.context_service.append(message)
        except PersistenceError as e:
            self.logger.error(f"消息持久化失败，跳过该条: {e}", exc_info=True)
            return

        self.delivered_count += 1
        self.logger.debug(f"已投递 [{message.msg_type}] {message.content[:50]}")

        await self._publish_delivered(message)
        await self._notify(message)

        if self.pacing_delay > 0 and self.is_visible():
            await asyncio.sleep(self.pacing_delay)

    async def _fire_side_effect(self, effect: str) -> None:
        if effect != "skip_track":
            self.logger.warning(f"未知的副作用: {effect}")
            return
        try:
            await self.playback.skip_to_next_track(self.conversation_id)
            self.logger.info("已请求播放器切到下一首")
        except Exception as e:
            self.logger.error(f"切歌失败: {e}", exc_info=True)

    async def _publish_delivered(self, message: Message) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(
            CoreEvents.MESSENGER_MESSAGE_DELIVERED,
            MessageDeliveredPayload(
                conversation_id=message.conversation_id,
                message_id=message.message_id,
                msg_type=message.msg_type,
                content=message.content,
                translation=message.translation,
                timestamp=message.timestamp,
                metadata=message.metadata.model_dump(),
            ),
            source="DeliveryQueue",
        )

    async def _notify(self, message: Message) -> None:
        config = self.notification_config
        if config.transmission_mode == "off" or not config.is_enabled_for(self.conversation_id):
            return
        try:
            await self.notifier.notify(
                self.title,
                message.content,
                silent=config.transmission_mode == "silent",
                tag=f"messenger-{self.conversation_id}",
            )
        except Exception as e:
            self.logger.error(f"发送通知失败: {e}", exc_info=True)
