"""
错误类型定义

所有业务错误都继承自 VideoDepotError，并携带对应的 HTTP 状态码，
由 webserver 中注册的错误处理器统一转换为文本响应。
"""

from typing import Optional


class VideoDepotError(Exception):
    """业务错误基类"""

    status_code = 500

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if status_code is not None:
            self.status_code = status_code

    def __str__(self):
        return self.message


class InvalidRequest(VideoDepotError):
    """请求参数缺失或格式错误（不会产生任何副作用）"""
    status_code = 400


class FilenameInvalid(InvalidRequest):
    """文件名包含路径分隔符或上级目录片段"""


class InvalidRange(InvalidRequest):
    """Range 请求头语法错误"""


class NotFound(VideoDepotError):
    status_code = 404


class RangeNotSatisfiable(VideoDepotError):
    """Range 起始位置超出文件大小"""

    status_code = 416

    def __init__(self, message: str = "", total_size: int = 0):
        super().__init__(message)
        self.total_size = total_size


class IOFailure(VideoDepotError):
    """读写磁盘失败"""
    status_code = 500


class UpstreamFailure(VideoDepotError):
    """远程 HTTP、BT 下载或 ffmpeg 执行失败"""
    status_code = 500


__all__ = [
    'VideoDepotError',
    'InvalidRequest',
    'FilenameInvalid',
    'InvalidRange',
    'NotFound',
    'RangeNotSatisfiable',
    'IOFailure',
    'UpstreamFailure',
]
