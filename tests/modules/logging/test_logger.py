"""日志系统单元测试。

测试 hoshino.modules.logging 模块的功能，包括：
- JSONL 和文本格式输出
- 控制台专用模式
- 目录创建
- 模块过滤
- 默认行为和延迟初始化
- 处理器清理
"""

import json
import os
from pathlib import Path

import pytest
from loguru import logger


@pytest.fixture
def temp_log_dir(tmp_path):
    """测试期间的临时日志目录。"""
    log_dir = tmp_path / "logs"
    log_dir.mkdir(exist_ok=True)
    return str(log_dir)


@pytest.fixture(autouse=True)
def reset_logger_state():
    """测试间重置 logger 状态。"""
    from hoshino.modules.logging import logger as logger_module

    old_configured = logger_module._CONFIGURED
    old_handler_ids = logger_module._HANDLER_IDS.copy()
    old_default_handler_id = logger_module._DEFAULT_HANDLER_ID

    yield

    logger_module._CONFIGURED = old_configured
    logger_module._HANDLER_IDS.clear()
    logger_module._HANDLER_IDS.extend(old_handler_ids)
    logger_module._DEFAULT_HANDLER_ID = old_default_handler_id

    for handler_id in list(logger._core.handlers.keys()):
        logger.remove(handler_id)


class TestJSONLFormat:
    """测试 JSONL 格式输出。"""

    def test_jsonl_format(self, temp_log_dir):
        """验证 JSONL 输出为清晰 JSON 格式。"""
        from hoshino.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": True, "format": "jsonl", "directory": temp_log_dir, "level": "INFO"})

        get_logger("DeliveryQueue").info("已投递 [text] 你好")

        log_files = list(Path(temp_log_dir).glob("hoshino_*.jsonl"))
        assert len(log_files) == 1, "应创建一个 JSONL 日志文件"

        with open(log_files[0], "r", encoding="utf-8") as f:
            log_obj = json.loads(f.readline())

        assert log_obj["level"] == "INFO"
        assert log_obj["module"] == "DeliveryQueue"
        assert log_obj["message"] == "已投递 [text] 你好"
        assert "timestamp" in log_obj

    def test_jsonl_respects_level(self, temp_log_dir):
        """低于文件级别的日志不写入。"""
        from hoshino.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": True, "format": "jsonl", "directory": temp_log_dir, "level": "WARNING"})
        test_logger = get_logger("level_test")
        test_logger.info("ignored")
        test_logger.warning("kept")

        log_files = list(Path(temp_log_dir).glob("*.jsonl"))
        with open(log_files[0], "r", encoding="utf-8") as f:
            lines = f.readlines()

        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "kept"


class TestTextFormat:
    """测试文本格式输出。"""

    def test_text_format(self, temp_log_dir):
        from hoshino.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": True, "format": "text", "directory": temp_log_dir, "level": "INFO"})
        get_logger("text_test").info("Text message")
        logger.complete()

        log_files = list(Path(temp_log_dir).glob("*.log"))
        assert len(log_files) == 1, "应创建一个文本日志文件"
        content = log_files[0].read_text(encoding="utf-8")
        assert "text_test" in content
        assert "Text message" in content


class TestConsoleOnly:
    """测试控制台专用模式。"""

    def test_console_only(self, temp_log_dir):
        """验证 enabled=False 时不创建文件。"""
        from hoshino.modules.logging import configure_from_config, get_logger

        configure_from_config({"enabled": False, "directory": temp_log_dir})
        get_logger("console_test").info("Console only message")

        assert list(Path(temp_log_dir).glob("*")) == [], "enabled=False 时不应创建日志文件"

    def test_directory_creation(self, tmp_path):
        """验证缺失时创建目录。"""
        from hoshino.modules.logging import configure_from_config

        non_existent_dir = str(tmp_path / "new_logs_dir")
        assert not os.path.exists(non_existent_dir)

        configure_from_config({"enabled": True, "format": "text", "directory": non_existent_dir})

        assert os.path.exists(non_existent_dir), "应自动创建日志目录"


class TestModuleFilter:
    """测试模块过滤。"""

    def test_filter_allows_listed_modules(self):
        from hoshino.modules.logging.logger import _build_module_filter

        module_filter = _build_module_filter(["SessionOrchestrator"])
        info = logger.level("INFO")
        warning = logger.level("WARNING")

        assert module_filter({"extra": {"module": "SessionOrchestrator"}, "level": info})
        assert not module_filter({"extra": {"module": "DeliveryQueue"}, "level": info})
        assert module_filter({"extra": {"module": "DeliveryQueue"}, "level": warning}), "WARNING 及以上总是放行"

    def test_empty_filter(self):
        from hoshino.modules.logging.logger import _build_module_filter

        assert _build_module_filter(None) is None
        assert _build_module_filter([]) is None


class TestDefaultBehavior:
    """测试默认行为。"""

    def test_default_behavior_without_config(self):
        """验证未提供配置时的行为（延迟默认处理器）。"""
        from hoshino.modules.logging import get_logger
        from hoshino.modules.logging import logger as logger_module

        logger_module._CONFIGURED = False
        logger_module._DEFAULT_HANDLER_ID = None

        test_logger = get_logger("default_test")

        assert logger_module._DEFAULT_HANDLER_ID is not None, "应创建默认处理器"
        test_logger.info("Default handler test")

    def test_default_behavior_with_none_config(self):
        from hoshino.modules.logging import configure_from_config
        from hoshino.modules.logging import logger as logger_module

        configure_from_config(None)

        assert logger_module._CONFIGURED, "应标记为已配置"


class TestHandlerCleanup:
    """测试处理器清理。"""

    def test_handler_cleanup(self, temp_log_dir):
        """验证重新配置前正确移除处理器。"""
        from hoshino.modules.logging import configure_from_config
        from hoshino.modules.logging import logger as logger_module

        configure_from_config({"enabled": True, "format": "text", "directory": temp_log_dir, "level": "DEBUG"})
        assert len(logger_module._HANDLER_IDS) == 2, "首次配置应有 2 个处理器"

        configure_from_config({"enabled": True, "format": "jsonl", "directory": temp_log_dir, "level": "WARNING"})
        assert len(logger_module._HANDLER_IDS) == 2, "重新配置后应有 2 个处理器"
        assert len(logger._core.handlers) == 2, "loguru 应只有 2 个活动处理器"

    def test_default_handler_removed_on_configure(self):
        from hoshino.modules.logging import configure_from_config, get_logger
        from hoshino.modules.logging import logger as logger_module

        logger_module._CONFIGURED = False
        get_logger("test").info("Before configure")
        assert logger_module._DEFAULT_HANDLER_ID is not None

        configure_from_config({"enabled": False})

        assert logger_module._DEFAULT_HANDLER_ID is None, "配置后应移除默认处理器"
