"""
ContextService 配置
"""

from pydantic import BaseModel, Field


class ContextServiceConfig(BaseModel):
    """上下文服务配置"""

    max_messages_per_conversation: int = Field(default=1000, ge=1, description="单个会话保留的最大消息数")
    max_conversations: int = Field(default=100, ge=1, description="最大会话数，超出时淘汰最久未活跃的会话")
