"""
TurnContextBuilder 单元测试
"""

from datetime import datetime, timezone

import pytest

from hoshino.domains.messenger import TurnContextBuilder, estimate_tokens
from hoshino.domains.messenger.context_builder import time_period
from hoshino.modules.config import (
    MessengerConfig,
    PersonaConfig,
    StickerConfig,
    TranslationModeConfig,
    WorldBookEntry,
)
from hoshino.modules.context import ImageMetadata, MessageRole, RedPacketMetadata, TextMetadata

# 上海时间 2026-10-19 (星期一) 14:30
FIXED_NOW = datetime(2026, 10, 19, 6, 30, tzinfo=timezone.utc)


def make_builder(context_service, persona=None, messenger=None, **kwargs) -> TurnContextBuilder:
    return TurnContextBuilder(
        context_service,
        persona or PersonaConfig(name="Hoshino", personality="爱猫", user_name="小林"),
        messenger or MessengerConfig(),
        clock=lambda: FIXED_NOW,
        **kwargs,
    )


# =============================================================================
# 辅助函数
# =============================================================================


@pytest.mark.parametrize("text, expected", [("", 0), ("你好", 3), ("hello", 2), ("你好abcd", 4)])
def test_estimate_tokens(text, expected):
    assert estimate_tokens(text) == expected


@pytest.mark.parametrize("hour, expected", [(0, "凌晨"), (5, "凌晨"), (6, "上午"), (12, "下午"), (18, "晚上"), (23, "晚上")])
def test_time_period(hour, expected):
    assert time_period(hour) == expected


# =============================================================================
# 结构
# =============================================================================


@pytest.mark.asyncio
async def test_build_structure(context_service):
    await context_service.add_message("c1", MessageRole.USER, "在干嘛")
    builder = make_builder(context_service)

    messages = await builder.build("c1")

    assert [m["role"] for m in messages] == ["system", "user", "system"]
    system = messages[0]["content"]
    assert "Identity: Hoshino" in system
    assert "Persona:\n爱猫" in system
    assert "User: 小林" in system
    assert "EXACTLY 3 to 5" in system
    assert "[Music: next]" in system
    assert messages[1] == {"role": "user", "content": "在干嘛"}
    assert messages[-1]["content"].startswith("[System Reminder]")
    assert "STAY IN CHARACTER (Hoshino)" in messages[-1]["content"]


@pytest.mark.asyncio
async def test_pending_user_text_appended(context_service):
    builder = make_builder(context_service)
    messages = await builder.build("c1", user_text="晚安")
    assert messages[-2] == {"role": "user", "content": "晚安"}


@pytest.mark.asyncio
async def test_history_limit(context_service):
    for i in range(5):
        await context_service.add_message("c1", MessageRole.USER, f"消息{i}")
    builder = make_builder(context_service, messenger=MessengerConfig(history_limit=2))

    messages = await builder.build("c1")
    history = [m["content"] for m in messages if m["role"] == "user"]
    assert history == ["消息3", "消息4"]


# =============================================================================
# 时间
# =============================================================================


@pytest.mark.asyncio
async def test_same_timezone(context_service):
    messages = await make_builder(context_service).build("c1")
    system = messages[0]["content"]
    assert "2026年10月19日 星期一 14:30 (下午)" in system
    assert "(Same Timezone)" in system
    assert "Current Time: 14:30 (下午)" in messages[-1]["content"]


@pytest.mark.asyncio
async def test_different_timezone(context_service):
    persona = PersonaConfig(name="Hoshino", timezone="Asia/Tokyo", user_timezone="Asia/Shanghai")
    messages = await make_builder(context_service, persona=persona).build("c1")
    system = messages[0]["content"]
    assert "Hoshino Local Time: 2026年10月19日 星期一 15:30 (下午)" in system
    assert "Time Difference: +1 hours" in system


# =============================================================================
# 规则与表情包
# =============================================================================


@pytest.mark.asyncio
async def test_optional_rules(context_service):
    messenger = MessengerConfig(
        reply_count="2",
        no_punctuation=True,
        translation_mode=TranslationModeConfig(enabled=True, target_language="中文"),
    )
    messages = await make_builder(context_service, messenger=messenger).build("c1")
    system = messages[0]["content"]
    assert "EXACTLY 2 message bubbles" in system
    assert "4. Do NOT use punctuation" in system
    assert '5. [BILINGUAL MODE]' in system
    assert '" ||| "' in system


@pytest.mark.asyncio
async def test_sticker_prompt(context_service):
    stickers = StickerConfig(names=[f"s{i}" for i in range(25)])
    messages = await make_builder(context_service, stickers=stickers).build("c1")
    system = messages[0]["content"]
    assert "[Stickers Available]" in system
    assert "s19" in system
    assert "s20" not in system


# =============================================================================
# 世界书
# =============================================================================


@pytest.mark.asyncio
async def test_world_book_selection(context_service):
    await context_service.add_message("c1", MessageRole.USER, "想喝COFFEE了")
    world_book = [
        WorldBookEntry(title="常驻", content="总是出现"),
        WorldBookEntry(title="咖啡店", content="星屑咖啡", keys="咖啡, coffee", injection_position="after_char"),
        WorldBookEntry(title="猫", content="一只橘猫", keys="猫"),
        WorldBookEntry(title="禁用", content="不会出现", enabled=False),
    ]
    messages = await make_builder(context_service, world_book=world_book).build("c1")
    system = messages[0]["content"]

    assert "[Information: 常驻]\n总是出现" in system
    assert "星屑咖啡" in system
    assert "一只橘猫" not in system
    assert "不会出现" not in system
    assert system.index("总是出现") < system.index("Identity: Hoshino") < system.index("星屑咖啡")


# =============================================================================
# 历史渲染
# =============================================================================


@pytest.mark.asyncio
async def test_special_messages_rendered(context_service):
    await context_service.add_message(
        "c1",
        MessageRole.USER,
        "红包: 10",
        msg_type="redpacket",
        metadata=RedPacketMetadata(amount="10", note="生日快乐"),
    )
    await context_service.add_message(
        "c1", MessageRole.USER, "一只猫", msg_type="image", metadata=ImageMetadata(description="一只猫")
    )
    await context_service.add_message("c1", MessageRole.ASSISTANT, "", msg_type="revoked")
    await context_service.add_message(
        "c1",
        MessageRole.ASSISTANT,
        "ありがとう",
        metadata=TextMetadata(translation="谢谢"),
    )

    messages = await make_builder(context_service).build("c1")
    rendered = [m["content"] for m in messages[1:-1]]

    assert rendered == [
        "[User sent Red Packet: 生日快乐, Amount: 10]",
        "[User sent Image: 一只猫]",
        "[System: Hoshino revoked a message]",
        "ありがとう ||| 谢谢",
    ]
