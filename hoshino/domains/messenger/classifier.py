"""
指令与翻译分类器

把一行模型输出分类为一条带类型的消息、一个副作用，或者丢弃。

线格式：
- 翻译后缀:  <content> ||| <translation>
- 指令标签:  [Keyword: arg1, arg2]，Keyword 不区分大小写，
             取值 Sticker / RedPacket / Transfer / Gift / Image / 图片 / Music，
             冒号可以是半角或全角，多参数用半角或全角逗号分隔

注意 ||| 的切分先于指令识别，参数中出现的 ||| 会截断指令。
无法识别或参数不完整的标签不会报错，整行按原样作为文本。

classify() 是纯函数，没有任何隐藏状态。
"""

import re
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

TRANSLATION_DELIMITER = "|||"

COMMAND_PATTERN = re.compile(r"\[(Sticker|RedPacket|Transfer|Gift|Image|图片|Music)[:：]\s*(.*?)\]", re.IGNORECASE)
ARG_SEPARATOR = re.compile(r"[,，]")

DEFAULT_REDPACKET_NOTE = "恭喜发财"
DEFAULT_TRANSFER_NOTE = "转账"
MUSIC_NEXT = "next"

SideEffect = Literal["skip_track"]


class TextMessage(BaseModel):
    """普通文本。side_effect 用于「文字 + [Music: next]」这种一行同时带切歌指令的情况"""

    kind: Literal["text"] = "text"
    content: str
    translation: Optional[str] = None
    side_effect: Optional[SideEffect] = None


class StickerMessage(BaseModel):
    kind: Literal["sticker"] = "sticker"
    name: str
    translation: Optional[str] = None


class RedPacketMessage(BaseModel):
    kind: Literal["redpacket"] = "redpacket"
    amount: str
    note: str = DEFAULT_REDPACKET_NOTE
    translation: Optional[str] = None


class TransferMessage(BaseModel):
    kind: Literal["transfer"] = "transfer"
    amount: str
    note: str = DEFAULT_TRANSFER_NOTE
    translation: Optional[str] = None


class GiftMessage(BaseModel):
    kind: Literal["gift"] = "gift"
    name: str
    translation: Optional[str] = None


class ImageMessage(BaseModel):
    kind: Literal["image"] = "image"
    description: str
    translation: Optional[str] = None


class SideEffectMessage(BaseModel):
    """只触发外部动作，不产生消息"""

    kind: Literal["side_effect"] = "side_effect"
    effect: SideEffect = "skip_track"


class DiscardedMessage(BaseModel):
    """空行，丢弃"""

    kind: Literal["none"] = "none"


ClassifiedMessage = Annotated[
    Union[
        TextMessage,
        StickerMessage,
        RedPacketMessage,
        TransferMessage,
        GiftMessage,
        ImageMessage,
        SideEffectMessage,
        DiscardedMessage,
    ],
    Field(discriminator="kind"),
]


def split_translation(line: str) -> tuple[str, Optional[str]]:
    """在第一个 ||| 处切分，返回 (正文, 翻译)；没有分隔符或翻译为空时翻译为 None"""
    content, delimiter, translation = line.partition(TRANSLATION_DELIMITER)
    if not delimiter:
        return content.strip(), None
    return content.strip(), translation.strip() or None


def _split_args(args: str) -> list[str]:
    return [part.strip() for part in ARG_SEPARATOR.split(args)]


def _parse_command(match: re.Match, content: str, translation: Optional[str]) -> Optional[ClassifiedMessage]:
    """解析匹配到的指令，参数不完整时返回 None（由调用方回退为文本）"""
    keyword = match.group(1).lower()
    args = match.group(2).strip()
    # 空名称、空金额不生成空表情包或空红包，整行按文本投递
    if not args:
        return None

    if keyword == "sticker":
        return StickerMessage(name=args, translation=translation)

    if keyword in ("redpacket", "transfer"):
        parts = _split_args(args)
        amount = parts[0]
        if not amount:
            return None
        note = parts[1] if len(parts) > 1 else ""
        if keyword == "redpacket":
            return RedPacketMessage(amount=amount, note=note or DEFAULT_REDPACKET_NOTE, translation=translation)
        return TransferMessage(amount=amount, note=note or DEFAULT_TRANSFER_NOTE, translation=translation)

    if keyword == "gift":
        return GiftMessage(name=args, translation=translation)

    if keyword in ("image", "图片"):
        return ImageMessage(description=args, translation=translation)

    # music：目前只支持 next
    if args.lower() != MUSIC_NEXT:
        return None
    remaining = (content[: match.start()] + content[match.end() :]).strip()
    if not remaining:
        return SideEffectMessage(effect="skip_track")
    return TextMessage(content=remaining, translation=translation, side_effect="skip_track")


def classify(line: str) -> ClassifiedMessage:
    """
    分类一行逻辑行

    Examples:
        >>> classify("开心呀|||Happy")
        TextMessage(kind='text', content='开心呀', translation='Happy', side_effect=None)
        >>> classify("[Transfer: 50]").note
        '转账'
    """
    content, translation = split_translation(line)
    if not content:
        return DiscardedMessage()

    match = COMMAND_PATTERN.search(content)
    if match is None:
        return TextMessage(content=content, translation=translation)

    parsed = _parse_command(match, content, translation)
    if parsed is None:
        return TextMessage(content=content, translation=translation)
    return parsed
