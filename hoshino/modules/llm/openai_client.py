"""
OpenAI 兼容 API 客户端（流式）

支持 OpenAI 官方 API 以及 SiliconFlow、DeepSeek、本地 vLLM 等兼容端点。
"""

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from hoshino.modules.config.schemas import LLMClientConfig
from hoshino.modules.llm.errors import TransportError
from hoshino.modules.logging import get_logger

CHAT_COMPLETIONS_SUFFIX = "/chat/completions"


def normalize_base_url(base_url: Optional[str]) -> Optional[str]:
    """
    规范化端点地址

    用户常把完整的 .../v1/chat/completions 填进配置，而 SDK 会自行拼接该路径，
    这里去掉末尾的斜杠与 /chat/completions。
    """
    if not base_url:
        return None
    url = base_url.strip().rstrip("/")
    if url.endswith(CHAT_COMPLETIONS_SUFFIX):
        url = url[: -len(CHAT_COMPLETIONS_SUFFIX)]
    return url or None


class OpenAIClient:
    """OpenAI 兼容流式客户端"""

    def __init__(self, config: LLMClientConfig):
        self.logger = get_logger("OpenAIClient")

        api_key = config.api_key
        if not api_key or api_key == "your-api-key":
            self.logger.warning("API Key 未配置，请在 config.toml 或环境变量 HOSHINO_LLM_API_KEY 中设置")
            api_key = "sk-dummy"

        self.client = AsyncOpenAI(api_key=api_key, base_url=normalize_base_url(config.base_url))
        self.model = config.model
        self.temperature = config.temperature
        self.max_tokens = config.max_tokens

        self.logger.info(f"OpenAI 客户端初始化完成 (模型: {self.model})")

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        """
        流式聊天，逐段产出文本增量

        stop_event 被设置后停止读取并关闭连接。

        Raises:
            TransportError: 请求或读取流失败
        """
        request_params: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "stream": True,
        }
        if max_tokens or self.max_tokens:
            request_params["max_tokens"] = max_tokens or self.max_tokens

        self.logger.debug(f"发送流式请求 (模型: {self.model}, 消息数: {len(messages)})")

        stream = None
        try:
            stream = await self.client.chat.completions.create(**request_params)
            async for chunk in stream:
                if stop_event is not None and stop_event.is_set():
                    self.logger.debug("收到停止信号，终止读取流")
                    break
                if not chunk.choices:
                    continue
                text_piece = getattr(chunk.choices[0].delta, "content", None)
                if text_piece:
                    yield text_piece
        except Exception as e:
            self.logger.error(f"流式 LLM 请求失败: {e}")
            raise TransportError(str(e)) from e
        finally:
            if stream is not None:
                await stream.close()

    async def cleanup(self) -> None:
        await self.client.close()
