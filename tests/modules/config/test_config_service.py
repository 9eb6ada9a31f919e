"""
ConfigService 与配置 Schema 测试

测试场景：
- 首次运行从模板复制 config.toml
- 配置与模板都缺失时报错
- 使用 tomlkit 加载并校验为 AppConfig
- 环境变量覆盖 API Key
- 点分路径读取配置节
"""

import os
import shutil
import tempfile

import pytest
from pydantic import ValidationError

from hoshino.modules.config import AppConfig, ConfigService, NotificationConfig, WorldBookEntry
from hoshino.modules.config.service import API_KEY_ENV

TEMPLATE = """
[llm]
model = "test-model"
api_key = "from-file"

[messenger]
pacing_delay = 0.5
reply_count = "2-3"

[messenger.translation_mode]
enabled = true
target_language = "English"

[notification]
transmission_mode = "silent"

[notification.per_conversation]
c2 = false

[persona]
name = "Hoshino"

[[world_book]]
title = "咖啡店"
content = "星屑咖啡"
keys = "咖啡"
"""

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_base_dir():
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def base_dir_with_template(temp_base_dir):
    with open(os.path.join(temp_base_dir, "config-template.toml"), "w", encoding="utf-8") as f:
        f.write(TEMPLATE)
    return temp_base_dir


@pytest.fixture(autouse=True)
def clear_api_key_env(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)


# =============================================================================
# 初始化
# =============================================================================


def test_copies_template_on_first_run(base_dir_with_template):
    service = ConfigService(base_dir=base_dir_with_template)
    main_config, copied = service.initialize()

    assert copied is True
    assert os.path.exists(os.path.join(base_dir_with_template, "config.toml"))
    assert main_config["llm"]["model"] == "test-model"


def test_existing_config_not_overwritten(base_dir_with_template):
    with open(os.path.join(base_dir_with_template, "config.toml"), "w", encoding="utf-8") as f:
        f.write('[llm]\nmodel = "local-model"\n')

    service = ConfigService(base_dir=base_dir_with_template)
    main_config, copied = service.initialize()

    assert copied is False
    assert main_config["llm"]["model"] == "local-model"
    assert service.app_config.messenger.pacing_delay == 0.8


def test_missing_config_and_template(temp_base_dir):
    service = ConfigService(base_dir=temp_base_dir)
    with pytest.raises(FileNotFoundError):
        service.initialize()


def test_initialize_twice(base_dir_with_template):
    service = ConfigService(base_dir=base_dir_with_template)
    first = service.initialize()
    second = service.initialize()
    assert first == second


def test_app_config_before_initialize(temp_base_dir):
    service = ConfigService(base_dir=temp_base_dir)
    with pytest.raises(RuntimeError):
        _ = service.app_config
    assert service.main_config == {}


# =============================================================================
# Schema
# =============================================================================


def test_app_config_sections(base_dir_with_template):
    service = ConfigService(base_dir=base_dir_with_template)
    service.initialize()
    config = service.app_config

    assert config.llm.api_key == "from-file"
    assert config.messenger.pacing_delay == 0.5
    assert config.messenger.reply_count == "2-3"
    assert config.messenger.translation_mode.enabled is True
    assert config.messenger.translation_mode.target_language == "English"
    assert config.notification.transmission_mode == "silent"
    assert config.world_book == [WorldBookEntry(title="咖啡店", content="星屑咖啡", keys="咖啡")]


def test_env_overrides_api_key(base_dir_with_template, monkeypatch):
    monkeypatch.setenv(API_KEY_ENV, "from-env")
    service = ConfigService(base_dir=base_dir_with_template)
    service.initialize()

    assert service.app_config.llm.api_key == "from-env"


def test_defaults_for_empty_config():
    config = AppConfig.model_validate({})
    assert config.messenger.pacing_delay == 0.8
    assert config.notification.transmission_mode == "normal"
    assert config.persona.name == "Hoshino"
    assert config.stickers.names == []


def test_invalid_transmission_mode():
    with pytest.raises(ValidationError):
        NotificationConfig(transmission_mode="loud")


def test_negative_pacing_rejected():
    with pytest.raises(ValidationError):
        AppConfig.model_validate({"messenger": {"pacing_delay": -1}})


def test_per_conversation_override():
    config = NotificationConfig(enabled=True, per_conversation={"c2": False})
    assert config.is_enabled_for("c1") is True
    assert config.is_enabled_for("c2") is False


# =============================================================================
# 配置节读取
# =============================================================================


def test_get_section_dotted_path(base_dir_with_template):
    service = ConfigService(base_dir=base_dir_with_template)
    service.initialize()

    assert service.get_section("messenger.translation_mode")["target_language"] == "English"
    assert service.get_section("missing.section", {"x": 1}) == {"x": 1}


def test_get_key(base_dir_with_template):
    service = ConfigService(base_dir=base_dir_with_template)
    service.initialize()

    assert service.get("model", section="llm") == "test-model"
    assert service.get("nothing", default="fallback", section="llm") == "fallback"
