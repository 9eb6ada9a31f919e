"""
行缓冲：把任意大小的增量片段重组为完整的逻辑行
"""

from typing import List, Optional


class LineBuffer:
    """
    累积增量文本，按换行切出完整行，保留未完成的尾部

    使用示例:
        buffer = LineBuffer()
        buffer.push("你好\\n在吗")   # -> ["你好"]
        buffer.flush()               # -> "在吗"
    """

    def __init__(self):
        self._buffer = ""

    @property
    def pending(self) -> str:
        """尚未遇到换行的尾部"""
        return self._buffer

    def push(self, delta: str) -> List[str]:
        """追加增量，返回新完成的非空行（已去除首尾空白）"""
        self._buffer += delta
        if "\n" not in self._buffer:
            return []

        *complete, self._buffer = self._buffer.split("\n")
        return [line for line in (raw.strip() for raw in complete) if line]

    def flush(self) -> Optional[str]:
        """取出并清空剩余内容；全是空白时返回 None"""
        remainder = self._buffer.strip()
        self._buffer = ""
        return remainder or None
