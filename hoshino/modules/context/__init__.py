"""
ContextService - 消息持久化服务
"""

from hoshino.modules.context.config import ContextServiceConfig
from hoshino.modules.context.models import (
    ConversationInfo,
    GenericMetadata,
    GiftMetadata,
    ImageMetadata,
    Message,
    MessageMetadata,
    MessageRole,
    MessageType,
    RedPacketMetadata,
    StickerMetadata,
    TextMetadata,
    TransferMetadata,
)
from hoshino.modules.context.service import ContextService, PersistenceError

__all__ = [
    "ContextService",
    "ContextServiceConfig",
    "ConversationInfo",
    "GenericMetadata",
    "GiftMetadata",
    "ImageMetadata",
    "Message",
    "MessageMetadata",
    "MessageRole",
    "MessageType",
    "PersistenceError",
    "RedPacketMetadata",
    "StickerMetadata",
    "TextMetadata",
    "TransferMetadata",
]
