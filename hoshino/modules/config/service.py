"""
ConfigService - 统一的配置管理服务

职责:
- 首次运行时从 config-template.toml 复制出 config.toml
- 使用 tomlkit 加载配置
- 按配置节提供原始字典或经 Schema 校验的模型
"""

import os
import shutil
from typing import Any, Dict, Optional

import tomlkit

from hoshino.modules.config.schemas import AppConfig
from hoshino.modules.logging import get_logger

API_KEY_ENV = "HOSHINO_LLM_API_KEY"


def load_toml(toml_path: str) -> Dict[str, Any]:
    """加载 TOML 文件为普通字典"""
    with open(toml_path, "r", encoding="utf-8") as f:
        return tomlkit.load(f).unwrap()


class ConfigService:
    """
    统一的配置管理服务

    使用示例:
        config_service = ConfigService(base_dir="/path/to/project")
        config_service.initialize()

        messenger_config = config_service.app_config.messenger
        logging_config = config_service.get_section("logging")
    """

    def __init__(
        self,
        base_dir: str,
        main_cfg_name: str = "config.toml",
        template_name: str = "config-template.toml",
    ):
        self.base_dir = base_dir
        self.config_path = os.path.join(base_dir, main_cfg_name)
        self.template_path = os.path.join(base_dir, template_name)
        self._main_config: Dict[str, Any] = {}
        self._app_config: Optional[AppConfig] = None
        self._main_config_copied = False
        self._initialized = False
        self.logger = get_logger("ConfigService")

    @property
    def main_config(self) -> Dict[str, Any]:
        if not self._initialized:
            self.logger.warning("ConfigService 未初始化，返回空配置")
            return {}
        return self._main_config

    @property
    def app_config(self) -> AppConfig:
        """经 Schema 校验后的完整配置"""
        if self._app_config is None:
            raise RuntimeError("ConfigService 未初始化，请先调用 initialize()")
        return self._app_config

    def initialize(self) -> tuple[Dict[str, Any], bool]:
        """
        初始化配置

        Returns:
            (main_config, main_config_copied)

        Raises:
            FileNotFoundError: 配置文件和模板都不存在
        """
        if self._initialized:
            self.logger.warning("ConfigService 已经初始化，跳过重复初始化")
            return self._main_config, self._main_config_copied

        if not os.path.exists(self.config_path):
            if not os.path.exists(self.template_path):
                raise FileNotFoundError(f"配置文件 {self.config_path} 与模板 {self.template_path} 均不存在")
            shutil.copyfile(self.template_path, self.config_path)
            self._main_config_copied = True
            self.logger.info(f"已从模板创建配置文件: {self.config_path}")

        self._main_config = load_toml(self.config_path)
        self._apply_env_overrides(self._main_config)
        self._app_config = AppConfig.model_validate(self._main_config)

        self._initialized = True
        self.logger.info("配置服务初始化完成")
        return self._main_config, self._main_config_copied

    def _apply_env_overrides(self, config: Dict[str, Any]) -> None:
        api_key = os.environ.get(API_KEY_ENV)
        if api_key:
            config.setdefault("llm", {})["api_key"] = api_key
            self.logger.debug(f"使用环境变量 {API_KEY_ENV} 覆盖 API Key")

    def get_section(self, section: str, default: Any = None) -> Dict[str, Any]:
        """
        获取配置节，支持点分路径（如 "messenger.translation_mode"）

        Args:
            section: 配置节名称
            default: 配置节不存在时返回的默认值
        """
        if not self._initialized:
            self.logger.warning("ConfigService 未初始化，返回空配置")
            return {} if default is None else default

        current: Any = self._main_config
        for part in section.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                self.logger.debug(f"配置节 '{section}' 不存在（在 '{part}' 处中断）")
                return {} if default is None else default

        return current if isinstance(current, dict) else ({} if default is None else default)

    def get(self, key: str, default: Any = None, section: Optional[str] = None) -> Any:
        """获取配置项（可限定配置节）"""
        if section:
            return self.get_section(section).get(key, default)
        return self._main_config.get(key, default)
