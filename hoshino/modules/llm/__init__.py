"""
LLM 模块 - 流式模型调用
"""

from .errors import LLMError, StreamCancelledError, TransportError
from .openai_client import OpenAIClient, normalize_base_url
from .receiver import StreamOptions, StreamReceiver, StreamingClient

__all__ = [
    "LLMError",
    "OpenAIClient",
    "StreamCancelledError",
    "StreamOptions",
    "StreamReceiver",
    "StreamingClient",
    "TransportError",
    "normalize_base_url",
]
