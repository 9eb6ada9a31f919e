"""
LLM 调用相关异常
"""


class LLMError(Exception):
    """LLM 调用异常基类"""


class TransportError(LLMError):
    """与模型后端通信失败（连接、鉴权、限流、流中断等），对当前回合是致命的"""


class StreamCancelledError(LLMError):
    """流被会话的取消令牌主动终止"""
