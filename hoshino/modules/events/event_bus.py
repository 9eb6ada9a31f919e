"""
事件总线

功能:
- 发布/订阅，类型化订阅（model_class 自动反序列化）
- 错误隔离（单个 handler 异常不影响其他 handler）
- 优先级控制（priority 数字越小越优先）
- 统计（emit 次数、错误数、执行时间）
- 生命周期管理（cleanup 等待活跃 emit 完成）

使用示例:
    from hoshino.modules.events.names import CoreEvents
    from hoshino.modules.events.payloads import MessageDeliveredPayload

    async def on_delivered(event_name: str, data: MessageDeliveredPayload, source: str):
        print(data.content)

    event_bus.on(CoreEvents.MESSENGER_MESSAGE_DELIVERED, on_delivered, model_class=MessageDeliveredPayload)
"""

import asyncio
import copy
import inspect
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from hoshino.modules.events.registry import EventRegistry
from hoshino.modules.logging import get_logger

T = TypeVar("T", bound=BaseModel)


@dataclass
class EventStats:
    """
    事件统计信息

    Attributes:
        emit_count: 发布次数
        listener_count: 监听器数量
        error_count: 错误次数
        last_emit_time: 最后发布时间(Unix时间戳,秒)
        last_error_time: 最后错误时间(Unix时间戳,秒)
        total_execution_time_ms: 总执行时间(毫秒)
    """

    emit_count: int = 0
    listener_count: int = 0
    error_count: int = 0
    last_emit_time: float = 0
    last_error_time: float = 0
    total_execution_time_ms: float = 0


@dataclass
class HandlerWrapper:
    """事件处理器包装器"""

    handler: Callable
    priority: int = 100
    error_count: int = 0
    last_error: Optional[str] = None
    original_handler: Optional[Callable] = None  # 用户提供的原始处理器（用于取消订阅）


class EventBus:
    """事件总线"""

    def __init__(self, enable_stats: bool = True):
        self._handlers: Dict[str, List[HandlerWrapper]] = defaultdict(list)
        self._stats: Dict[str, EventStats] = defaultdict(EventStats)
        self.enable_stats = enable_stats
        self._is_cleanup = False
        self._active_emits: Dict[str, asyncio.Event] = {}
        self._background_tasks: set = set()
        self.logger = get_logger("EventBus")
        self.logger.debug(f"EventBus 初始化完成 (stats={enable_stats})")

    async def emit(
        self, event_name: str, data: BaseModel, source: str = "unknown", error_isolate: bool = True, wait: bool = False
    ) -> None:
        """
        发布事件

        Args:
            event_name: 事件名称
            data: Pydantic Model 实例（序列化为 dict 后分发）
            source: 事件源（通常是发布者的类名）
            error_isolate: True 时 handler 异常被记录而不传播；False 时第一个异常传播给调用者
            wait: True 时等待所有 handler 执行完成再返回；False 时在后台任务中执行

        Raises:
            TypeError: data 不是 BaseModel 实例
        """
        if self._is_cleanup:
            self.logger.warning(f"EventBus 正在清理中，忽略事件: {event_name}")
            return

        if not isinstance(data, BaseModel):
            raise TypeError(
                f"EventBus.emit() 要求 data 参数必须是 Pydantic BaseModel 实例，收到类型: {type(data).__name__}"
            )

        dict_data = data.model_dump()
        self._validate_event_data(event_name, dict_data)

        handlers = self._handlers.get(event_name, [])
        if not handlers:
            self.logger.debug(f"事件 {event_name} 没有监听器")
            return

        handlers = sorted(handlers, key=lambda h: h.priority)
        self.logger.debug(f"[{event_name}] {source}: {data}")

        if self.enable_stats:
            stats = self._stats[event_name]
            stats.emit_count += 1
            stats.last_emit_time = time.time()
            stats.listener_count = len(handlers)

        start_time = time.time()
        complete_event = asyncio.Event()
        emit_id = f"{event_name}_{id(complete_event)}"
        self._active_emits[emit_id] = complete_event

        async def emit_with_tracking():
            try:
                tasks = [
                    asyncio.create_task(self._call_handler(wrapper, event_name, dict_data, source, error_isolate))
                    for wrapper in handlers
                ]
                # 隔离模式下异常已在 _call_handler 中记录
                await asyncio.gather(*tasks, return_exceptions=error_isolate)

                if self.enable_stats:
                    self._stats[event_name].total_execution_time_ms += (time.time() - start_time) * 1000
            finally:
                complete_event.set()
                self._active_emits.pop(emit_id, None)

        if wait:
            await emit_with_tracking()
        else:
            task = asyncio.create_task(emit_with_tracking())
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)

    async def _call_handler(
        self, wrapper: HandlerWrapper, event_name: str, data: Any, source: str, error_isolate: bool
    ):
        try:
            if inspect.iscoroutinefunction(wrapper.handler):
                await wrapper.handler(event_name, data, source)
            else:
                # 同步处理器在线程池中执行
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, wrapper.handler, event_name, data, source)
        except Exception as e:
            wrapper.error_count += 1
            wrapper.last_error = str(e)

            if not error_isolate:
                raise
            self.logger.error(f"事件处理器执行错误 (事件: {event_name}, 来源: {source}): {e}", exc_info=True)
            if self.enable_stats:
                self._stats[event_name].error_count += 1
                self._stats[event_name].last_error_time = time.time()

    def on(self, event_name: str, handler: Callable, model_class: Type[T], priority: int = 100) -> None:
        """
        订阅类型化事件

        Args:
            event_name: 事件名称
            handler: 处理器 (event_name, data, source)，data 为 model_class 实例
            model_class: 期望的数据模型类型，EventBus 会把 dict 反序列化为该类型
            priority: 优先级（数字越小越优先，默认 100）
        """
        try:
            EventRegistry.register_core_event(event_name, model_class)
        except ValueError:
            self.logger.debug(f"事件 '{event_name}' 不符合核心事件命名规范")

        async def typed_wrapper(event_name: str, dict_data: Dict[str, Any], source: str):
            try:
                typed_data = model_class.model_validate(dict_data)
            except ValidationError as e:
                self.logger.error(f"类型化事件数据验证失败 ({event_name}, 期望类型: {model_class.__name__}): {e}")
                return

            result = handler(event_name, typed_data, source)
            if inspect.isawaitable(result):
                await result

        wrapper = HandlerWrapper(handler=typed_wrapper, priority=priority, original_handler=handler)
        self._handlers[event_name].append(wrapper)
        self.logger.debug(
            f"注册类型化事件监听器: {event_name} -> {getattr(handler, '__name__', handler)} "
            f"(类型: {model_class.__name__}, 优先级: {priority})"
        )

    def off(self, event_name: str, handler: Callable) -> None:
        """取消订阅（可以传原始处理器或包装后的处理器）"""
        handlers = self._handlers.get(event_name, [])
        for i, wrapper in enumerate(handlers):
            if wrapper.handler == handler or wrapper.original_handler == handler:
                handlers.pop(i)
                self.logger.debug(f"移除事件监听器: {event_name}")
                break

        if not handlers:
            self._handlers.pop(event_name, None)

    def clear(self) -> None:
        """清除所有事件监听器和统计信息"""
        self._handlers.clear()
        self._stats.clear()

    async def cleanup(self, timeout: float = 5.0) -> None:
        """
        清理 EventBus

        等待活跃的 emit 完成（最多 timeout 秒），然后清除所有监听器。
        """
        self._is_cleanup = True

        if self._active_emits:
            active_count = len(self._active_emits)
            self.logger.info(f"等待 {active_count} 个活跃的 emit 完成...")
            try:
                waiters = [event.wait() for event in self._active_emits.values()]
                await asyncio.wait_for(asyncio.gather(*waiters), timeout=timeout)
            except asyncio.TimeoutError:
                self.logger.warning(f"等待 emit 完成超时（{timeout}秒），强制清理 {len(self._active_emits)} 个活跃任务")

        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

        self.clear()
        self.logger.info("EventBus 已清理")

    async def drain(self) -> None:
        """等待所有后台 emit 任务完成"""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def get_listeners_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def list_events(self) -> List[str]:
        return list(self._handlers.keys())

    def get_stats(self, event_name: str) -> Optional[EventStats]:
        """获取事件统计信息的深拷贝（未启用统计或无记录时返回 None）"""
        if not self.enable_stats:
            return None
        stats = self._stats.get(event_name)
        if stats is None:
            return None
        return copy.deepcopy(stats)

    def get_all_stats(self) -> Dict[str, EventStats]:
        if not self.enable_stats:
            return {}
        return {k: copy.deepcopy(v) for k, v in self._stats.items()}

    def reset_stats(self, event_name: Optional[str] = None):
        if event_name:
            self._stats[event_name] = EventStats()
        else:
            self._stats.clear()

    def _validate_event_data(self, event_name: str, data: Dict[str, Any]) -> None:
        """已注册事件校验数据格式，未注册事件只记录 debug"""
        model = EventRegistry.get(event_name)
        if model is None:
            self.logger.debug(f"未注册的事件: {event_name}")
            return

        try:
            model.model_validate(data)
        except ValidationError as e:
            self.logger.warning(f"事件数据验证失败 ({event_name}): {e.error_count()} 个错误")
