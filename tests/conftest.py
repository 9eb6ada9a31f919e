"""
Pytest 全局共享 fixtures

这个文件定义了跨多个测试模块共享的 fixtures。
如果某个 fixture 只在特定 domain 使用，应该放在该 domain 的 conftest.py 中。
"""

from typing import AsyncGenerator

import pytest

from hoshino.modules.context import ContextService
from hoshino.modules.events import EventBus, register_core_events


@pytest.fixture
async def event_bus() -> AsyncGenerator[EventBus, None]:
    """
    创建干净的 EventBus 实例

    每个测试获得独立的事件总线，避免测试间相互干扰。
    """
    register_core_events()
    bus = EventBus()
    yield bus
    await bus.cleanup()


@pytest.fixture
async def context_service() -> AsyncGenerator[ContextService, None]:
    """创建 ContextService 实例（默认配置，内存存储）"""
    service = ContextService()
    await service.initialize()
    yield service
    await service.cleanup()
