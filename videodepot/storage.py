"""
视频存储目录

所有视频文件都平铺存放在同一个根目录下，只通过文件名寻址。
根目录在构造时注入，便于测试时指向临时目录。
"""

import os
import stat
import logging
from dataclasses import dataclass

from .errors import FilenameInvalid, NotFound

logger = logging.getLogger(__name__)

VIDEO_MIME_TYPE = "video/mp4"


@dataclass
class StoredFile:
    """存储目录中的一个文件"""

    filename: str
    path: str
    size_bytes: int
    mime_hint: str = VIDEO_MIME_TYPE


def validate_filename(filename) -> str:
    """校验文件名，拒绝任何可能逃出存储目录的名字

    Args:
        filename: 客户端提供的文件名

    Returns:
        原样返回合法的文件名

    Raises:
        FilenameInvalid: 文件名为空、包含路径分隔符、NUL 或为 . / ..
    """
    if not isinstance(filename, str) or not filename.strip():
        raise FilenameInvalid("Filename is required")
    if "/" in filename or "\\" in filename or "\x00" in filename:
        raise FilenameInvalid(f"Invalid filename: {filename!r}")
    if filename in (".", ".."):
        raise FilenameInvalid(f"Invalid filename: {filename!r}")
    return filename


class MediaStorage:
    """视频存储根目录"""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def ensure_root(self):
        os.makedirs(self.root, exist_ok=True)

    def path_for(self, filename: str) -> str:
        """获取文件在存储目录中的绝对路径

        Args:
            filename: 文件名

        Returns:
            绝对路径
        """
        validate_filename(filename)
        path = os.path.join(self.root, filename)
        # 校验后理论上不会出现，双重检查拼接结果仍位于根目录下
        if os.path.dirname(os.path.abspath(path)) != self.root:
            raise FilenameInvalid(f"Invalid filename: {filename!r}")
        return path

    def stat(self, filename: str) -> StoredFile:
        """获取已存储文件的信息

        只执行 stat，不打开文件句柄。

        Args:
            filename: 文件名

        Returns:
            StoredFile 实例

        Raises:
            FilenameInvalid: 文件名不合法
            NotFound: 文件不存在或不是普通文件
        """
        path = self.path_for(filename)
        try:
            st = os.stat(path)
        except OSError:
            raise NotFound("File not found")
        if not stat.S_ISREG(st.st_mode):
            raise NotFound("File not found")
        return StoredFile(filename=filename, path=path, size_bytes=st.st_size)
