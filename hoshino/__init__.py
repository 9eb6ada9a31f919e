"""
Hoshino Messenger

模拟手机消息应用的流式回复分段与投递管线。
"""

__version__ = "0.1.0"
