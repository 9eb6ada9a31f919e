"""
Hoshino 日志模块
"""

from .logger import configure_from_config, get_logger

__all__ = [
    "configure_from_config",
    "get_logger",
]
