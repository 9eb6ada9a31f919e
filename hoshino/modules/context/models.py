"""
ContextService 数据模型

消息、消息元数据（按消息类型区分的标签联合）与会话信息。
"""

import time
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class MessageRole(str, Enum):
    """消息角色"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    """消息类型（另有 event_* 前缀的事件类消息）"""

    TEXT = "text"
    STICKER = "sticker"
    REDPACKET = "redpacket"
    TRANSFER = "transfer"
    GIFT = "gift"
    IMAGE = "image"
    MUSIC_CARD = "music_card"
    REVOKED = "revoked"


EVENT_TYPE_PREFIX = "event_"

# 这些消息类型的元数据 kind 必须与类型同名；其它类型使用 text 或 generic 元数据
TYPED_METADATA_KINDS = {
    MessageType.TEXT.value,
    MessageType.STICKER.value,
    MessageType.REDPACKET.value,
    MessageType.TRANSFER.value,
    MessageType.GIFT.value,
    MessageType.IMAGE.value,
}


# ========== 元数据 ==========


class _MetadataBase(BaseModel):
    translation: Optional[str] = Field(default=None, description="翻译（任意消息类型均可携带）")


class TextMetadata(_MetadataBase):
    kind: Literal["text"] = "text"


class StickerMetadata(_MetadataBase):
    kind: Literal["sticker"] = "sticker"
    sticker_url: str = Field(default="", description="表情包地址，由渲染层按名称解析")


class RedPacketMetadata(_MetadataBase):
    kind: Literal["redpacket"] = "redpacket"
    amount: str
    note: str


class TransferMetadata(_MetadataBase):
    kind: Literal["transfer"] = "transfer"
    amount: str
    note: str


class GiftMetadata(_MetadataBase):
    kind: Literal["gift"] = "gift"
    gift_name: str


class ImageMetadata(_MetadataBase):
    kind: Literal["image"] = "image"
    description: str


class GenericMetadata(_MetadataBase):
    """音乐卡片、撤回、事件类消息等由其它模块产生的消息"""

    kind: Literal["generic"] = "generic"
    data: Dict[str, Any] = Field(default_factory=dict)


MessageMetadata = Annotated[
    Union[
        TextMetadata,
        StickerMetadata,
        RedPacketMetadata,
        TransferMetadata,
        GiftMetadata,
        ImageMetadata,
        GenericMetadata,
    ],
    Field(discriminator="kind"),
]


# ========== 消息与会话 ==========


class Message(BaseModel):
    """持久化的消息"""

    conversation_id: str = Field(..., description="会话ID")
    role: MessageRole = Field(..., description="消息角色")
    msg_type: str = Field(default=MessageType.TEXT.value, description="消息类型")
    content: str = Field(..., description="显示/摘要文本")
    metadata: MessageMetadata = Field(default_factory=TextMetadata, description="类型相关的元数据")
    timestamp: int = Field(..., description="毫秒时间戳，同一会话内严格递增")
    message_id: str = Field(default_factory=lambda: str(uuid4()), description="唯一ID")

    @field_validator("msg_type", mode="before")
    @classmethod
    def _check_msg_type(cls, value: Any) -> str:
        if isinstance(value, MessageType):
            return value.value
        if not isinstance(value, str):
            raise ValueError(f"msg_type 必须是字符串，收到: {type(value).__name__}")
        if value in MessageType._value2member_map_ or value.startswith(EVENT_TYPE_PREFIX):
            return value
        raise ValueError(f"未知的消息类型: {value}")

    @model_validator(mode="after")
    def _check_metadata_kind(self) -> "Message":
        kind = self.metadata.kind
        if self.msg_type in TYPED_METADATA_KINDS:
            if kind != self.msg_type:
                raise ValueError(f"消息类型 {self.msg_type} 与元数据 {kind} 不匹配")
        elif kind not in ("text", "generic"):
            raise ValueError(f"消息类型 {self.msg_type} 不能携带 {kind} 元数据")
        return self

    @property
    def translation(self) -> Optional[str]:
        return self.metadata.translation


class ConversationInfo(BaseModel):
    """会话信息"""

    conversation_id: str = Field(..., description="会话ID")
    created_at: float = Field(default_factory=time.time, description="创建时间")
    last_activity: int = Field(default=0, description="最后活跃时间（毫秒）")
    message_count: int = Field(default=0, description="消息数量")
