"""
转码服务模块

对存储目录中已有的视频执行 FFmpeg 操作：
- 更换编码格式
- 压缩
- 提取字幕
"""

from .config import TranscodeConfig
from .task import TranscodeTask, TaskStatus, Operation
from .ffprobe import FFprobeRunner
from .ffmpeg import FFmpegRunner
from .manager import TranscodeManager

__all__ = [
    'TranscodeConfig',
    'TranscodeTask',
    'TaskStatus',
    'Operation',
    'FFprobeRunner',
    'FFmpegRunner',
    'TranscodeManager',
]
