"""
配置模块
"""

from .schemas import (
    AppConfig,
    LLMClientConfig,
    MessengerConfig,
    NotificationConfig,
    PersonaConfig,
    StickerConfig,
    TranslationModeConfig,
    TransmissionMode,
    WorldBookEntry,
)
from .service import ConfigService

__all__ = [
    "AppConfig",
    "ConfigService",
    "LLMClientConfig",
    "MessengerConfig",
    "NotificationConfig",
    "PersonaConfig",
    "StickerConfig",
    "TranslationModeConfig",
    "TransmissionMode",
    "WorldBookEntry",
]
