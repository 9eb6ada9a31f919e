"""
StreamReceiver - 流式接收适配器

把模型后端的异步增量流转换为回调形式：
- on_delta(text): 按顺序、不重复地收到任意大小的增量片段
- on_complete(full_text) / on_error(err): 二者恰好触发其一，标志回合结束

回调既可以是普通函数，也可以是协程函数。
"""

import asyncio
import inspect
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from hoshino.modules.llm.errors import StreamCancelledError, TransportError
from hoshino.modules.logging import get_logger


class StreamingClient(Protocol):
    """流式后端需要实现的接口（OpenAIClient 即为其实现）"""

    def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        max_tokens: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]: ...


class StreamOptions(BaseModel):
    """单次流式请求参数"""

    max_output_tokens: Optional[int] = Field(default=None, ge=1, description="输出长度上限，由后端负责执行")


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class StreamReceiver:
    """流式接收适配器"""

    def __init__(self, client: StreamingClient):
        self.client = client
        self.logger = get_logger("StreamReceiver")

    async def send(
        self,
        context_messages: List[Dict[str, str]],
        on_delta: Callable[[str], Any],
        on_complete: Callable[[str], Any],
        on_error: Callable[[Exception], Any],
        options: Optional[StreamOptions] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        发送上下文并驱动回调

        Args:
            context_messages: OpenAI 格式的消息列表
            on_delta: 增量回调
            on_complete: 完成回调，参数为完整文本
            on_error: 错误回调，参数为 TransportError（其它异常也包装为它）或 StreamCancelledError
            options: 请求参数
            stop_event: 取消令牌，被设置后以 StreamCancelledError 结束
        """
        options = options or StreamOptions()
        pieces: List[str] = []

        try:
            async for piece in self.client.stream_chat(
                context_messages,
                max_tokens=options.max_output_tokens,
                stop_event=stop_event,
            ):
                if stop_event is not None and stop_event.is_set():
                    break
                pieces.append(piece)
                await _invoke(on_delta, piece)
        except TransportError as e:
            self.logger.warning(f"流式接收失败: {e}")
            await _invoke(on_error, e)
            return
        except Exception as e:
            # 后端或回调的其它异常同样结束本回合
            self.logger.error(f"流式接收出现未预期的错误: {e}", exc_info=True)
            error = TransportError(str(e) or type(e).__name__)
            error.__cause__ = e
            await _invoke(on_error, error)
            return

        if stop_event is not None and stop_event.is_set():
            self.logger.info(f"流式接收已取消（已接收 {len(pieces)} 个片段）")
            await _invoke(on_error, StreamCancelledError("会话已取消"))
            return

        full_text = "".join(pieces)
        self.logger.debug(f"流式接收完成，共 {len(pieces)} 个片段，{len(full_text)} 字符")
        await _invoke(on_complete, full_text)
