"""配置 Schema 定义

config.toml 各配置节对应的 Pydantic 模型。
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

TransmissionMode = Literal["normal", "silent", "off"]
InjectionPosition = Literal["before_char", "after_char", "after_scenario"]


class LLMClientConfig(BaseModel):
    """LLM客户端配置

    Attributes:
        model: 模型名称
        api_key: API密钥（可被环境变量 HOSHINO_LLM_API_KEY 覆盖）
        base_url: OpenAI 兼容 API 基础URL
        temperature: 默认温度参数
        max_tokens: 默认最大token数（0 表示不限制）
    """

    model: str = Field(default="gpt-4o-mini", description="模型名称")
    api_key: Optional[str] = Field(default=None, description="API密钥")
    base_url: Optional[str] = Field(default=None, description="API基础URL（可选，用于自定义端点）")
    temperature: float = Field(default=0.7, description="默认温度参数", ge=0.0, le=2.0)
    max_tokens: int = Field(default=0, description="默认最大token数，0 表示交给后端决定", ge=0)

    model_config = {"extra": "ignore"}


class TranslationModeConfig(BaseModel):
    """双语模式：角色用母语回复，并用 ||| 附上中文翻译"""

    enabled: bool = Field(default=False, description="是否启用双语模式")
    target_language: str = Field(default="中文", description="翻译目标语言")


class MessengerConfig(BaseModel):
    """消息应用配置"""

    pacing_delay: float = Field(default=0.8, description="两条气泡之间的投递间隔（秒）", ge=0.0)
    history_limit: int = Field(default=0, description="上下文历史条数，0 表示全部", ge=0)
    reply_count: str = Field(default="3-5", description="期望的气泡数量，如 '3' 或 '3-5'")
    no_punctuation: bool = Field(default=False, description="要求模型省略标点")
    max_output_tokens: int = Field(default=0, description="单次回复的最大输出 token，0 表示不限制", ge=0)
    translation_mode: TranslationModeConfig = Field(default_factory=TranslationModeConfig)

    model_config = {"extra": "ignore"}


class NotificationConfig(BaseModel):
    """通知配置

    per_conversation 中的值覆盖全局 enabled 开关。
    """

    enabled: bool = Field(default=True, description="全局通知开关")
    transmission_mode: TransmissionMode = Field(default="normal", description="通讯模式：normal / silent / off")
    per_conversation: Dict[str, bool] = Field(default_factory=dict, description="按会话覆盖通知开关")

    def is_enabled_for(self, conversation_id: str) -> bool:
        return self.per_conversation.get(conversation_id, self.enabled)


class PersonaConfig(BaseModel):
    """角色与用户人设"""

    name: str = Field(default="Hoshino", description="角色名")
    personality: str = Field(default="", description="角色性格/描述")
    relationship: str = Field(default="Stranger", description="与用户的关系")
    timezone: str = Field(default="Asia/Shanghai", description="角色所在时区")
    user_name: str = Field(default="User", description="用户名")
    user_description: str = Field(default="Unknown", description="用户简介")
    user_timezone: str = Field(default="Asia/Shanghai", description="用户所在时区")


class WorldBookEntry(BaseModel):
    """世界书条目

    keys 为逗号分隔的触发词；为空时条目总是注入。
    """

    title: str = Field(default="Entry", description="条目标题")
    content: str = Field(..., description="条目内容")
    keys: str = Field(default="", description="触发关键词，逗号分隔")
    enabled: bool = Field(default=True, description="是否启用")
    injection_position: InjectionPosition = Field(default="before_char", description="注入位置")


class StickerConfig(BaseModel):
    """可用表情包"""

    names: List[str] = Field(default_factory=list, description="表情包名称列表")


class AppConfig(BaseModel):
    """config.toml 根结构"""

    logging: Dict[str, Any] = Field(default_factory=dict)
    llm: LLMClientConfig = Field(default_factory=LLMClientConfig)
    messenger: MessengerConfig = Field(default_factory=MessengerConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    world_book: List[WorldBookEntry] = Field(default_factory=list)
    stickers: StickerConfig = Field(default_factory=StickerConfig)

    model_config = {"extra": "ignore"}
