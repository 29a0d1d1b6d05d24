"""
FFmpeg 进程管理模块

负责构建和执行 FFmpeg 命令。
"""

import os
import subprocess
import logging
from typing import List, Optional, Tuple

from .config import TranscodeConfig
from .task import TranscodeTask, Operation

logger = logging.getLogger(__name__)

# 字幕输出扩展名 -> 字幕编码器
SUBTITLE_CODECS = {
    ".srt": "srt",
    ".vtt": "webvtt",
    ".ass": "ass",
    ".ssa": "ass",
}


class FFmpegRunner:
    """FFmpeg 进程管理器

    构建 FFmpeg 命令并同步执行。
    """

    def __init__(self, config: TranscodeConfig):
        self.config = config
        self.ffmpeg_path = config.ffmpeg_path

    def build_command(self, task: TranscodeTask) -> List[str]:
        """构建 FFmpeg 命令

        Args:
            task: 转码任务

        Returns:
            FFmpeg 命令列表
        """
        cmd = [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-loglevel", self.config.loglevel,
            "-i", task.input_path,
        ]

        if task.operation == Operation.CONVERT:
            cmd.extend(self._get_convert_params(task))
        elif task.operation == Operation.COMPRESS:
            cmd.extend(self._get_compress_params(task))
        elif task.operation == Operation.SUBTITLES:
            cmd.extend(self._get_subtitle_params(task))
        else:
            raise ValueError(f"Unsupported operation: {task.operation}")

        cmd.extend(["-y", task.output_path])
        return cmd

    def _get_convert_params(self, task: TranscodeTask) -> List[str]:
        video_codec = task.params.get("video_codec") or self.config.video_codec
        audio_codec = task.params.get("audio_codec") or self.config.audio_codec
        return ["-c:v", video_codec, "-c:a", audio_codec]

    def _get_compress_params(self, task: TranscodeTask) -> List[str]:
        crf = task.params.get("crf", self.config.crf)
        preset = task.params.get("preset") or self.config.preset
        return [
            "-c:v", "libx264",
            "-crf", str(crf),
            "-preset", preset,
            "-c:a", "copy",
        ]

    def _get_subtitle_params(self, task: TranscodeTask) -> List[str]:
        stream_index = int(task.params.get("stream_index", 0))
        ext = os.path.splitext(task.output_filename)[1].lower()
        codec = SUBTITLE_CODECS.get(ext, "srt")
        return ["-map", f"0:s:{stream_index}", "-c:s", codec]

    def run(self, command: List[str], timeout: Optional[int] = None) -> Tuple[bool, Optional[str]]:
        """执行 FFmpeg 命令并等待结束

        Args:
            command: FFmpeg 命令
            timeout: 超时时间（秒），默认使用配置中的 task_timeout

        Returns:
            (成功标志, 错误信息)
        """
        timeout = timeout or self.config.task_timeout
        try:
            result = subprocess.run(
                command,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except subprocess.TimeoutExpired:
            logger.error(f"FFmpeg timeout after {timeout}s")
            return False, f"ffmpeg timeout ({timeout}s)"
        except FileNotFoundError:
            logger.error("ffmpeg executable not found")
            return False, "ffmpeg not found"

        if result.returncode != 0:
            # 只保留最后几行，ffmpeg 的 stderr 可能很长
            tail = "\n".join((result.stderr or "").strip().splitlines()[-5:])
            logger.warning(f"FFmpeg exited with code {result.returncode}: {tail}")
            return False, tail or f"ffmpeg exited with code {result.returncode}"

        return True, None

    def get_command_line_string(self, command: List[str]) -> str:
        """获取命令行字符串（用于日志记录）"""
        return " ".join(command)
