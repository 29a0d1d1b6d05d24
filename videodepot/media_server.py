"""
视频文件服务

根据文件名和 Range 请求头生成 200（完整内容）或 206（部分内容）响应。
文件内容按固定大小的块从磁盘读取，不会整体加载到内存。
"""

import logging
from typing import Dict, Iterator, Optional
from dataclasses import dataclass, field

from .errors import IOFailure
from .range_resolver import RangeSpec, resolve
from .storage import MediaStorage, VIDEO_MIME_TYPE

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class MediaResponse:
    """与 Web 框架无关的响应描述"""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Iterator[bytes]] = None


def iter_file_range(path: str, start: int, end: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """按顺序读取文件的 [start, end] 闭区间

    文件在第一次迭代时才打开；客户端断开时 WSGI 服务器会关闭生成器，
    finally 中释放文件句柄。

    Args:
        path: 文件路径
        start: 起始字节
        end: 结束字节（包含）
        chunk_size: 每次读取的最大字节数

    Yields:
        文件内容块
    """
    remaining = end - start + 1
    f = None
    try:
        f = open(path, 'rb')
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                # 文件在读取过程中被截断
                raise IOFailure(f"Unexpected end of file: {path}")
            remaining -= len(chunk)
            yield chunk
    except OSError as e:
        logger.error(f"Error in video streaming: {path}: {e}")
        raise IOFailure(f"Error reading {path}: {e}")
    finally:
        if f is not None:
            f.close()


class MediaServer:
    """从存储目录中提供视频文件"""

    def __init__(self, storage: MediaStorage, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.storage = storage
        self.chunk_size = chunk_size

    def serve(self, filename: str, range_header: Optional[str] = None) -> MediaResponse:
        """生成视频文件的响应

        Args:
            filename: 存储目录中的文件名
            range_header: Range 请求头，可以为 None

        Returns:
            MediaResponse，body 为惰性生成器

        Raises:
            FilenameInvalid: 文件名不合法
            NotFound: 文件不存在
            InvalidRange: Range 格式错误
            RangeNotSatisfiable: Range 超出文件范围
        """
        stored = self.storage.stat(filename)
        total = stored.size_bytes

        byte_range = resolve(range_header, total)
        if byte_range is None:
            headers = {
                "Content-Type": VIDEO_MIME_TYPE,
                "Content-Length": str(total),
            }
            body = iter_file_range(stored.path, 0, total - 1, self.chunk_size) if total > 0 else iter(())
            return MediaResponse(200, headers, body)

        return self._partial(stored.path, byte_range)

    def _partial(self, path: str, byte_range: RangeSpec) -> MediaResponse:
        headers = {
            "Content-Range": byte_range.content_range,
            "Accept-Ranges": "bytes",
            "Content-Length": str(byte_range.chunk_size),
            "Content-Type": VIDEO_MIME_TYPE,
        }
        logger.debug(f"Serving {byte_range.content_range} of {path}")
        return MediaResponse(206, headers, iter_file_range(path, byte_range.start, byte_range.end, self.chunk_size))
