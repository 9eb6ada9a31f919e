"""
Messenger 域 - 流式回复的分段与投递

LineBuffer 把增量重组为行，classify() 把行分类为消息或副作用，
DeliveryQueue 按节奏逐条持久化并通知，SessionOrchestrator 串起整个回合。
"""

from .classifier import (
    ClassifiedMessage,
    DiscardedMessage,
    GiftMessage,
    ImageMessage,
    RedPacketMessage,
    SideEffectMessage,
    StickerMessage,
    TextMessage,
    TransferMessage,
    classify,
    split_translation,
)
from .collaborators import (
    EventBusNotifier,
    EventBusPlaybackController,
    Notifier,
    PlaybackController,
    VisibilityProbe,
    always_visible,
)
from .context_builder import TurnContextBuilder, estimate_tokens
from .delivery_queue import DeliveryQueue, display_amount, to_message
from .errors import MessengerError, SessionBusyError, StreamCancelledError, TransportError
from .line_buffer import LineBuffer
from .orchestrator import SessionOrchestrator, SessionState, StreamSession

__all__ = [
    "ClassifiedMessage",
    "DeliveryQueue",
    "DiscardedMessage",
    "EventBusNotifier",
    "EventBusPlaybackController",
    "GiftMessage",
    "ImageMessage",
    "LineBuffer",
    "MessengerError",
    "Notifier",
    "PlaybackController",
    "RedPacketMessage",
    "SessionBusyError",
    "SessionOrchestrator",
    "SessionState",
    "SideEffectMessage",
    "StickerMessage",
    "StreamCancelledError",
    "StreamSession",
    "TextMessage",
    "TransferMessage",
    "TransportError",
    "TurnContextBuilder",
    "VisibilityProbe",
    "always_visible",
    "classify",
    "display_amount",
    "estimate_tokens",
    "split_translation",
    "to_message",
]
