"""
TurnContextBuilder - 构建一次回复的模型上下文

上下文由三部分组成：
1. system 提示：世界书、人设、表情包列表、时间信息、输出格式规则、可用指令
2. 会话历史（特殊类型的消息渲染为方括号描述）
3. 结尾的 system 提醒，重申格式与角色
"""

import math
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hoshino.domains.messenger.classifier import TRANSLATION_DELIMITER
from hoshino.modules.config import MessengerConfig, PersonaConfig, StickerConfig, WorldBookEntry
from hoshino.modules.context import ContextService, Message, MessageRole, MessageType
from hoshino.modules.logging import get_logger

CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")

# 世界书关键词只在最近的这些消息中匹配
KEYWORD_SCAN_WINDOW = 20
MAX_STICKERS_IN_PROMPT = 20

WEEKDAYS = ["星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日"]


def estimate_tokens(text: str) -> int:
    """粗略估算 token 数：汉字按 1.5，其余字符按 1/4"""
    if not text:
        return 0
    cjk = len(CJK_PATTERN.findall(text))
    other = len(text) - cjk
    return math.ceil(cjk * 1.5 + other / 4)


def time_period(hour: int) -> str:
    if hour < 6:
        return "凌晨"
    if hour < 12:
        return "上午"
    if hour < 18:
        return "下午"
    return "晚上"


def _format_local(moment: datetime) -> str:
    return f"{moment:%Y年%m月%d日} {WEEKDAYS[moment.weekday()]} {moment:%H:%M} ({time_period(moment.hour)})"


def _utc_offset_hours(moment: datetime) -> float:
    offset = moment.utcoffset()
    return offset.total_seconds() / 3600 if offset else 0.0


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


class TurnContextBuilder:
    """
    上下文构建器

    Args:
        context_service: 读取会话历史
        persona: 角色与用户人设
        messenger: 回复格式配置
        world_book: 世界书条目
        stickers: 可用表情包
        clock: 返回当前 UTC 时间，测试时可替换
    """

    def __init__(
        self,
        context_service: ContextService,
        persona: PersonaConfig,
        messenger: MessengerConfig,
        world_book: Optional[List[WorldBookEntry]] = None,
        stickers: Optional[StickerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.context_service = context_service
        self.persona = persona
        self.messenger = messenger
        self.world_book = world_book or []
        self.stickers = stickers or StickerConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("TurnContextBuilder")

    @property
    def reply_count_display(self) -> str:
        return self.messenger.reply_count.replace("-", " to ")

    async def build(self, conversation_id: str, user_text: Optional[str] = None) -> List[Dict[str, str]]:
        """
        构建 OpenAI 格式的消息列表

        Args:
            conversation_id: 会话ID
            user_text: 尚未持久化的用户输入（通常已在调用前写入历史，此时传 None）
        """
        limit = self.messenger.history_limit or None
        history = await self.context_service.get_history(conversation_id, limit=limit)
        now = self.clock()

        messages: List[Dict[str, str]] = [{"role": "system", "content": self.build_system_prompt(history, now)}]
        messages.extend(self.render_history(history))
        if user_text:
            messages.append({"role": "user", "content": user_text})
        messages.append({"role": "system", "content": self.build_reminder(now)})

        total = sum(estimate_tokens(m["content"]) for m in messages)
        self.logger.debug(f"会话 {conversation_id} 上下文构建完成: {len(messages)} 条消息，约 {total} tokens")
        return messages

    # ==================== system 提示 ====================

    def select_world_book(self, history: List[Message]) -> List[WorldBookEntry]:
        """选出要注入的世界书条目：没有关键词的总是注入，有关键词的在最近消息中命中才注入"""
        recent = "\n".join(m.content for m in history[-KEYWORD_SCAN_WINDOW:]).lower()
        selected = []
        for entry in self.world_book:
            if not entry.enabled:
                continue
            keys = [k.strip().lower() for k in entry.keys.split(",") if k.strip()]
            if not keys or any(k in recent for k in keys):
                selected.append(entry)
        return selected

    @staticmethod
    def _format_entries(entries: List[WorldBookEntry], position: str) -> str:
        return "\n\n".join(
            f"[Information: {e.title}]\n{e.content}" for e in entries if e.injection_position == position
        )

    def build_system_prompt(self, history: List[Message], now: datetime) -> str:
        persona = self.persona
        entries = self.select_world_book(history)

        core_parts = [
            self._format_entries(entries, "before_char"),
            f"Identity: {persona.name}",
            f"Persona:\n{persona.personality}" if persona.personality else "",
            self._format_entries(entries, "after_char"),
            f"User: {persona.user_name}",
            f"User Info: {persona.user_description}",
            f"Relationship: {persona.relationship}",
            self._format_entries(entries, "after_scenario"),
        ]
        sections = ["\n\n".join(p for p in core_parts if p)]

        if self.stickers.names:
            names = ", ".join(self.stickers.names[:MAX_STICKERS_IN_PROMPT])
            sections.append(f"[Stickers Available]\nYou can use: [{names}]\nSend with: [Sticker: ExactName]")

        sections.append(self.build_time_context(now))
        sections.append(self.build_output_rules())
        return "\n\n".join(sections)

    def build_time_context(self, now: datetime) -> str:
        user_time = now.astimezone(_zone(self.persona.user_timezone))
        lines = [
            "[Time Context]",
            f"Global Time: {now.astimezone(timezone.utc).isoformat()}",
            f"User Local Time: {_format_local(user_time)}",
        ]
        if self.persona.timezone != self.persona.user_timezone:
            char_time = now.astimezone(_zone(self.persona.timezone))
            diff = _utc_offset_hours(char_time) - _utc_offset_hours(user_time)
            lines.append(f"{self.persona.name} Local Time: {_format_local(char_time)}")
            lines.append(f"Time Difference: {diff:+g} hours")
        else:
            lines.append("(Same Timezone)")
        return "\n".join(lines)

    def build_output_rules(self) -> str:
        rules = [
            "[MANDATORY OUTPUT RULES]",
            f"1. Reply with EXACTLY {self.reply_count_display} message bubbles.",
            "2. Each bubble must be under 80 Chinese characters or 150 English characters.",
            "3. Separate bubbles with a single newline. Do not number them.",
        ]
        if self.messenger.no_punctuation:
            rules.append(f"{len(rules)}. Do NOT use punctuation at the end of bubbles. Use spaces or line breaks instead.")
        translation = self.messenger.translation_mode
        if translation.enabled:
            rules.append(
                f"{len(rules)}. [BILINGUAL MODE]: Reply in {self.persona.name}'s native language, then append "
                f'" {TRANSLATION_DELIMITER} " followed by the {translation.target_language} translation on the same line.'
            )

        commands = [
            "[Commands]",
            "- SEND STICKER: [Sticker: ExactName]",
            "- SEND RED PACKET: [RedPacket: amount, note]",
            "- TRANSFER MONEY: [Transfer: amount, note]",
            "- SEND GIFT: [Gift: name]",
            "- SEND IMAGE: [Image: description]",
            "- SKIP TO NEXT SONG: [Music: next]",
            "Each command takes one whole bubble.",
        ]
        return "\n".join(rules) + "\n\n" + "\n".join(commands)

    # ==================== 历史 ====================

    def render_message(self, message: Message) -> str:
        sender = "User" if message.role == MessageRole.USER else self.persona.name
        metadata = message.metadata
        msg_type = message.msg_type

        if msg_type == MessageType.IMAGE.value:
            return f"[{sender} sent Image: {message.content}]"
        if msg_type == MessageType.GIFT.value:
            return f"[{sender} sent Gift: {message.content}]"
        if msg_type == MessageType.STICKER.value:
            return f"[Sticker: {message.content}]"
        if msg_type == MessageType.REDPACKET.value:
            return f"[{sender} sent Red Packet: {getattr(metadata, 'note', '')}, Amount: {getattr(metadata, 'amount', '')}]"
        if msg_type == MessageType.TRANSFER.value:
            return f"[{sender} transferred money: {getattr(metadata, 'amount', '')}, Note: {getattr(metadata, 'note', '')}]"
        if msg_type == MessageType.REVOKED.value:
            return f"[System: {sender} revoked a message]"

        if message.translation:
            return f"{message.content} {TRANSLATION_DELIMITER} {message.translation}"
        return message.content

    def render_history(self, history: List[Message]) -> List[Dict[str, str]]:
        return [{"role": m.role.value, "content": self.render_message(m)} for m in history]

    # ==================== 结尾提醒 ====================

    def build_reminder(self, now: datetime) -> str:
        user_time = now.astimezone(_zone(self.persona.user_timezone))
        return "\n".join(
            [
                "[System Reminder]",
                f"1. Current Time: {user_time:%H:%M} ({time_period(user_time.hour)}). React naturally to the time.",
                f"2. STAY IN CHARACTER ({self.persona.name}).",
                "3. RULE: TEXT ONLY. No actions, no narration, no asterisks.",
                f"4. FORMAT: EXACTLY {self.reply_count_display} bubbles, separated by newlines.",
            ]
        )
