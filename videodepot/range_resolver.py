"""
HTTP Range 请求头解析

只支持单个区间 ``bytes=<start>-<end>``，``<end>`` 可省略。
返回 None 表示未请求区间，调用方应返回完整内容。
"""

import re
from typing import Optional
from dataclasses import dataclass

from .errors import InvalidRange, RangeNotSatisfiable

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


@dataclass(frozen=True)
class RangeSpec:
    """闭区间 [start, end]，满足 0 <= start <= end <= total - 1"""

    start: int
    end: int
    total: int

    @property
    def chunk_size(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total}"


def resolve(range_header: Optional[str], total_size: int) -> Optional[RangeSpec]:
    """把 Range 请求头解析成具体的字节区间

    Args:
        range_header: Range 请求头的值，可以为 None
        total_size: 文件总大小（字节）

    Returns:
        RangeSpec；未请求区间或文件为空时返回 None

    Raises:
        InvalidRange: 请求头格式错误（非数字、缺少 start、多个区间、end < start）
        RangeNotSatisfiable: start 超出文件末尾
    """
    if range_header is None or not range_header.strip():
        return None

    # 空文件没有合法区间，按完整内容返回（长度为 0）
    if total_size <= 0:
        return None

    match = _RANGE_RE.match(range_header.strip())
    if not match:
        raise InvalidRange(f"Malformed Range header: {range_header}")

    start_str, end_str = match.groups()
    if not start_str:
        # 后缀形式 bytes=-N 不支持
        raise InvalidRange(f"Malformed Range header: {range_header}")

    start = int(start_str, 10)
    if start > total_size - 1:
        raise RangeNotSatisfiable(
            f"Range start {start} beyond end of file ({total_size} bytes)",
            total_size=total_size,
        )

    if end_str:
        end = min(int(end_str, 10), total_size - 1)
        if end < start:
            raise InvalidRange(f"Malformed Range header: {range_header}")
    else:
        end = total_size - 1

    return RangeSpec(start=start, end=end, total=total_size)
