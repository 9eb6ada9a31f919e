"""日志配置模块。

基于 loguru，延迟初始化：导入时不添加任何处理器。
应用启动时（main.py）调用 configure_from_config() 完成配置；
在此之前调用 get_logger() 会自动挂上一个默认的 stderr 处理器。
"""

import json
import os
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from loguru import logger as loguru_logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)

# 模块级状态
_CONFIGURED = False
_HANDLER_IDS: list[int] = []
_DEFAULT_HANDLER_ID: int | None = None


def _ensure_default_handler():
    """若尚未配置，创建默认 stderr 处理器。"""
    global _DEFAULT_HANDLER_ID
    if _DEFAULT_HANDLER_ID is None and not _CONFIGURED:
        _DEFAULT_HANDLER_ID = loguru_logger.add(
            sys.stderr,
            level="INFO",
            colorize=True,
            format=CONSOLE_FORMAT,
        )
    return _DEFAULT_HANDLER_ID


def _build_module_filter(filter_config: Any) -> Optional[Callable[[Dict[str, Any]], bool]]:
    """根据 filter 配置构建模块过滤器。

    filter_config 可以是模块名列表，也可以是现成的过滤函数（main.py 传入）。
    WARNING 及以上级别总是放行。
    """
    if not filter_config:
        return None
    if callable(filter_config):
        return filter_config

    allowed = set(filter_config)

    def module_filter(record):
        module = record["extra"].get("module", "unknown")
        return module in allowed or record["level"].no >= loguru_logger.level("WARNING").no

    return module_filter


def _add_jsonl_handler(directory: str, level: str, split_by_session: bool) -> int:
    """添加 JSONL 文件处理器，每行一个 JSON 对象。"""
    stamp = time.strftime("%Y%m%d_%H%M%S") if split_by_session else time.strftime("%Y-%m-%d")
    file_path = Path(directory) / f"hoshino_{stamp}.jsonl"

    def json_sink(message):
        # serialize=True 时 message 为 {"text": ..., "record": {...}}
        record = json.loads(message)["record"]
        log_obj = {
            "timestamp": record["time"]["repr"],
            "level": record["level"]["name"],
            "module": record["extra"].get("module", "unknown"),
            "message": record["message"],
        }
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_obj, ensure_ascii=False) + "\n")

    return loguru_logger.add(json_sink, level=level, serialize=True)


def _add_text_handler(
    directory: str, level: str, split_by_session: bool, rotation: str, retention: str, compression: str
) -> int:
    """添加文本文件处理器（支持轮转、保留、压缩）。"""
    if split_by_session:
        file_path = os.path.join(directory, f"hoshino_{time.strftime('%Y%m%d_%H%M%S')}.log")
    else:
        file_path = os.path.join(directory, "hoshino_{time}.log")
    return loguru_logger.add(
        file_path,
        level=level,
        format=CONSOLE_FORMAT,
        rotation=rotation,
        retention=retention,
        compression=compression,
        encoding="utf-8",
    )


def configure_from_config(config_dict: dict | None = None) -> None:
    """从配置字典配置日志。

    应在应用启动时调用一次。

    Args:
        config_dict: [logging] 配置节，支持的键：
            - enabled: bool - 启用文件日志（默认 True）
            - format: "jsonl" | "text" - 文件格式（默认 "jsonl"）
            - directory: str - 日志目录（默认 "logs"）
            - level: str - 文件日志级别（默认 "INFO"）
            - console_level: str - 控制台日志级别（默认 "INFO"）
            - rotation / retention / compression: 文本格式的轮转参数
            - split_by_session: bool - 每次启动生成新文件（默认 False）
            - filter: list[str] | callable - 仅显示这些模块的 INFO/DEBUG 日志
    """
    global _CONFIGURED, _DEFAULT_HANDLER_ID

    cfg = config_dict or {}
    _CONFIGURED = True

    # loguru 自带的默认处理器以及我们之前添加的处理器全部移除，避免重复输出
    loguru_logger.remove()
    _DEFAULT_HANDLER_ID = None
    _HANDLER_IDS.clear()

    console_id = loguru_logger.add(
        sys.stderr,
        level=cfg.get("console_level", "INFO"),
        colorize=True,
        format=CONSOLE_FORMAT,
        filter=_build_module_filter(cfg.get("filter")),
    )
    _HANDLER_IDS.append(console_id)

    if not cfg.get("enabled", True):
        return

    directory = cfg.get("directory", "logs")
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as e:
        loguru_logger.warning(f"无法创建日志目录 {directory}，将仅使用控制台输出: {e}")
        return

    level = cfg.get("level", "INFO")
    split_by_session = cfg.get("split_by_session", False)
    if cfg.get("format", "jsonl") == "jsonl":
        _HANDLER_IDS.append(_add_jsonl_handler(directory, level, split_by_session))
    else:
        _HANDLER_IDS.append(
            _add_text_handler(
                directory,
                level,
                split_by_session,
                cfg.get("rotation", "10 MB"),
                cfg.get("retention", "7 days"),
                cfg.get("compression", "zip"),
            )
        )


def get_logger(module_name: str):
    """获取绑定了模块名的 loguru logger。

    Args:
        module_name: 模块名称，用于标识日志来源

    Returns:
        绑定了 extra[module] 的 loguru logger
    """
    _ensure_default_handler()
    return loguru_logger.bind(module=module_name)


__all__ = ["get_logger", "configure_from_config"]
