"""
Messenger 域测试共享 fixtures
"""

import asyncio
from typing import List

import pytest

from tests.mocks import RecordingNotifier, RecordingPlayback


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def playback() -> RecordingPlayback:
    return RecordingPlayback()


@pytest.fixture
def recorded_sleeps(monkeypatch) -> List[float]:
    """记录 asyncio.sleep 的参数，实际只让出一次控制权"""
    delays: List[float] = []
    original_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await original_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays
