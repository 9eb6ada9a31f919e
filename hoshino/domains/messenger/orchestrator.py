"""
SessionOrchestrator - 流式回合编排

一个回合：用户输入 -> 构建上下文 -> 流式接收 -> 按行分类 -> 逐条投递。

会话状态机：
    IDLE --submit--> REQUESTING --首个增量--> STREAMING --完成--> FLUSHING --> IDLE
    REQUESTING / STREAMING --错误或取消--> IDLE

正在输入（typing）状态在非 IDLE 期间为真，变化时发布 messenger.typing.changed。
回合结束后投递队列可能仍在按节奏投递，队列清空后会话被销毁。
"""

import asyncio
from enum import Enum
from functools import partial
from typing import Dict, Optional, Set

from hoshino.domains.messenger.classifier import classify
from hoshino.domains.messenger.collaborators import Notifier, PlaybackController, VisibilityProbe, always_visible
from hoshino.domains.messenger.context_builder import TurnContextBuilder
from hoshino.domains.messenger.delivery_queue import DeliveryQueue
from hoshino.domains.messenger.errors import SessionBusyError, StreamCancelledError
from hoshino.domains.messenger.line_buffer import LineBuffer
from hoshino.modules.config import MessengerConfig, NotificationConfig
from hoshino.modules.context import ContextService, MessageRole
from hoshino.modules.events import CoreEvents, EventBus
from hoshino.modules.events.payloads import TurnFailedPayload, TypingChangedPayload
from hoshino.modules.llm import StreamOptions, StreamReceiver
from hoshino.modules.logging import get_logger


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    FLUSHING = "flushing"


class StreamSession:
    """单个会话的一次回合：行缓冲、投递队列与取消令牌"""

    def __init__(self, conversation_id: str, queue: DeliveryQueue, stop_event: asyncio.Event):
        self.conversation_id = conversation_id
        self.line_buffer = LineBuffer()
        self.queue = queue
        self.stop_event = stop_event
        self.state = SessionState.IDLE
        self.error: Optional[Exception] = None
        self.full_text = ""
        # 流结束（完成、失败或取消）时设置
        self.closed = asyncio.Event()
        # 被本回合顶替、队列可能仍在投递的上一回合；其队列清空后置空
        self.previous: Optional["StreamSession"] = None

    @property
    def is_active(self) -> bool:
        return self.state != SessionState.IDLE

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def cancel(self) -> None:
        """设置本回合及仍在投递的上一回合的取消令牌"""
        self.stop_event.set()
        if self.previous is not None:
            self.previous.cancel()

    async def wait_done(self) -> None:
        """等待流结束且队列投递完毕"""
        await self.closed.wait()
        await self.queue.wait_idle()


class SessionOrchestrator:
    """
    会话编排器

    每个会话同一时刻最多一个进行中的回合；回合进行中再次 submit 会抛出 SessionBusyError。
    上一回合的队列尚未投递完时，新回合会先等待它清空，保证同一会话的消息按顺序落库。

    使用示例:
        orchestrator = SessionOrchestrator(context_service, receiver, builder, notifier, playback, event_bus=bus)
        await orchestrator.submit("c1", "在干嘛")
        await orchestrator.wait_idle("c1")
    """

    def __init__(
        self,
        context_service: ContextService,
        receiver: StreamReceiver,
        context_builder: TurnContextBuilder,
        notifier: Notifier,
        playback: PlaybackController,
        *,
        event_bus: Optional[EventBus] = None,
        messenger_config: Optional[MessengerConfig] = None,
        notification_config: Optional[NotificationConfig] = None,
        title: str = "Hoshino",
        is_visible: VisibilityProbe = always_visible,
    ):
        self.context_service = context_service
        self.receiver = receiver
        self.context_builder = context_builder
        self.notifier = notifier
        self.playback = playback
        self.event_bus = event_bus
        self.messenger_config = messenger_config or MessengerConfig()
        self.notification_config = notification_config or NotificationConfig()
        self.title = title
        self.is_visible = is_visible

        self.logger = get_logger("SessionOrchestrator")

        self._sessions: Dict[str, StreamSession] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    # ==================== 查询 ====================

    def get_session(self, conversation_id: str) -> Optional[StreamSession]:
        return self._sessions.get(conversation_id)

    def is_typing(self, conversation_id: str) -> bool:
        session = self._sessions.get(conversation_id)
        return session is not None and session.is_active

    def _stream_options(self) -> StreamOptions:
        max_tokens = self.messenger_config.max_output_tokens
        return StreamOptions(max_output_tokens=max_tokens or None)

    # ==================== 回合 ====================

    async def submit(self, conversation_id: str, user_text: Optional[str] = None) -> StreamSession:
        """
        开始一个回合，流结束后返回（队列可能仍在投递）

        Args:
            conversation_id: 会话ID
            user_text: 用户输入；为 None 时直接基于现有历史生成（重新生成）

        Raises:
            SessionBusyError: 该会话已有进行中的回合
        """
        previous = self._sessions.get(conversation_id)
        if previous is not None and previous.is_active:
            raise SessionBusyError(conversation_id)

        session = self._create_session(conversation_id)
        if previous is not None and not previous.queue.is_idle:
            session.previous = previous
        self._sessions[conversation_id] = session
        await self._set_state(session, SessionState.REQUESTING)

        try:
            if session.previous is not None:
                await session.previous.queue.wait_idle()
                session.previous = None
            if session.cancelled:
                return await self._abandon(session)
            if user_text:
                await self.context_service.add_message(conversation_id, MessageRole.USER, user_text)
            messages = await self.context_builder.build(conversation_id)
        except Exception as e:
            self.logger.error(f"会话 {conversation_id} 准备上下文失败: {e}", exc_info=True)
            await self._finish(session)
            raise

        if session.cancelled:
            return await self._abandon(session)

        self.logger.info(f"会话 {conversation_id} 开始请求回复 (上下文 {len(messages)} 条)")
        try:
            await self.receiver.send(
                messages,
                on_delta=partial(self._on_delta, session),
                on_complete=partial(self._on_complete, session),
                on_error=partial(self._on_error, session),
                options=self._stream_options(),
                stop_event=session.stop_event,
            )
        finally:
            if session.is_active:
                await self._finish(session)
            self._schedule_disposal(session)
        return session

    async def regenerate(self, conversation_id: str) -> StreamSession:
        """取消当前回合（如有），删除最后一轮助手消息后重新生成"""
        current = self._sessions.get(conversation_id)
        if current is not None:
            current.cancel()
            await current.wait_done()

        removed = await self.context_service.delete_last_assistant_turn(conversation_id)
        self.logger.info(f"会话 {conversation_id} 重新生成，已删除 {removed} 条旧回复")
        return await self.submit(conversation_id)

    def cancel(self, conversation_id: str) -> bool:
        """取消会话的进行中回合与待投递消息，返回是否有可取消的内容"""
        session = self._sessions.get(conversation_id)
        if session is None or (not session.is_active and session.queue.is_idle):
            return False
        session.cancel()
        self.logger.info(f"已取消会话 {conversation_id}")
        return True

    async def wait_idle(self, conversation_id: str) -> None:
        session = self._sessions.get(conversation_id)
        if session is not None:
            await session.wait_done()

    async def shutdown(self, timeout: float = 5.0) -> None:
        """取消所有会话并等待队列停止"""
        sessions = list(self._sessions.values())
        queues = []
        for session in sessions:
            if session.previous is not None:
                queues.append(session.previous.queue)
            queues.append(session.queue)
            session.cancel()

        if queues:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(q.wait_idle() for q in queues), return_exceptions=True),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                self.logger.warning(f"等待投递队列停止超时 ({timeout}s)")

        for task in list(self._background_tasks):
            task.cancel()
        self._background_tasks.clear()
        self._sessions.clear()
        self.logger.info("SessionOrchestrator 已关闭")

    # ==================== 回调 ====================

    async def _on_delta(self, session: StreamSession, delta: str) -> None:
        if session.state == SessionState.REQUESTING:
            await self._set_state(session, SessionState.STREAMING)
        for line in session.line_buffer.push(delta):
            session.queue.enqueue(classify(line))

    async def _on_complete(self, session: StreamSession, full_text: str) -> None:
        await self._set_state(session, SessionState.FLUSHING)
        remainder = session.line_buffer.flush()
        if remainder:
            session.queue.enqueue(classify(remainder))
        session.full_text = full_text

        try:
            await self.context_service.update_conversation(session.conversation_id)
        except Exception as e:
            self.logger.error(f"更新会话活跃时间失败: {e}", exc_info=True)

        self.logger.info(f"会话 {session.conversation_id} 回复接收完成 ({len(full_text)} 字符)")
        await self._finish(session)

    async def _on_error(self, session: StreamSession, error: Exception) -> None:
        if isinstance(error, StreamCancelledError):
            self.logger.info(f"会话 {session.conversation_id} 回复已取消")
        else:
            session.error = error
            self.logger.error(f"会话 {session.conversation_id} 回复失败: {error}")
            if self.event_bus is not None:
                await self.event_bus.emit(
                    CoreEvents.MESSENGER_TURN_FAILED,
                    TurnFailedPayload(conversation_id=session.conversation_id, error=str(error)),
                    source="SessionOrchestrator",
                )
        await self._finish(session)

    # ==================== 内部 ====================

    def _create_session(self, conversation_id: str) -> StreamSession:
        stop_event = asyncio.Event()
        queue = DeliveryQueue(
            conversation_id,
            self.context_service,
            self.notifier,
            self.playback,
            title=self.title,
            notification_config=self.notification_config,
            event_bus=self.event_bus,
            pacing_delay=self.messenger_config.pacing_delay,
            is_visible=self.is_visible,
            stop_event=stop_event,
        )
        return StreamSession(conversation_id, queue, stop_event)

    async def _set_state(self, session: StreamSession, state: SessionState) -> None:
        was_typing = session.is_active
        session.state = state
        self.logger.debug(f"会话 {session.conversation_id} 状态: {state.value}")

        if was_typing != session.is_active and self.event_bus is not None:
            await self.event_bus.emit(
                CoreEvents.MESSENGER_TYPING_CHANGED,
                TypingChangedPayload(conversation_id=session.conversation_id, typing=session.is_active),
                source="SessionOrchestrator",
            )

    async def _finish(self, session: StreamSession) -> None:
        await self._set_state(session, SessionState.IDLE)
        session.closed.set()

    async def _abandon(self, session: StreamSession) -> StreamSession:
        """请求发出前已被取消：不写入用户消息，也不请求后端"""
        self.logger.info(f"会话 {session.conversation_id} 在请求前已取消")
        await self._finish(session)
        self._schedule_disposal(session)
        return session

    def _schedule_disposal(self, session: StreamSession) -> None:
        task = asyncio.create_task(self._dispose_when_drained(session))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _dispose_when_drained(self, session: StreamSession) -> None:
        await session.queue.wait_idle()
        if self._sessions.get(session.conversation_id) is session:
            del self._sessions[session.conversation_id]
            self.logger.debug(f"会话 {session.conversation_id} 投递完毕，已销毁")
