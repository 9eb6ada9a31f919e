"""
事件 Payload 基类

为所有事件 Payload 提供统一的字符串表示，用于 EventBus 的日志输出。
"""

from typing import Any, List

from pydantic import BaseModel


class BasePayload(BaseModel):
    """
    事件 Payload 基类

    子类通过覆盖 _debug_fields() 选择日志中显示的字段。
    """

    def _debug_fields(self) -> List[str]:
        """返回需要在日志中显示的字段名列表（默认全部字段）"""
        return list(self.__class__.model_fields.keys())

    def _format_field_value(self, value: Any) -> str:
        if isinstance(value, BaseModel):
            return str(value)
        if isinstance(value, dict):
            if not value:
                return "{}"
            return "{" + ", ".join(f"{k}: {self._format_field_value(v)}" for k, v in value.items()) + "}"
        if isinstance(value, list):
            return "[" + ", ".join(self._format_field_value(item) for item in value) + "]"
        if isinstance(value, str):
            # 限制字符串长度
            if len(value) > 50:
                return f'"{value[:47]}..."'
            return f'"{value}"'
        return str(value)

    def __str__(self) -> str:
        parts = [
            f"{name}={self._format_field_value(getattr(self, name))}"
            for name in self._debug_fields()
            if hasattr(self, name)
        ]
        return f"{self.__class__.__name__}({', '.join(parts)})"
