"""
FFprobe 媒体信息获取模块

使用 ffprobe 获取本地视频文件的媒体信息（时长、编码、字幕流等）。
"""

import json
import subprocess
import logging
from typing import Dict, Any, Tuple, Optional

logger = logging.getLogger(__name__)


class FFprobeRunner:
    """FFprobe 运行器"""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        """初始化 FFprobe 运行器

        Args:
            ffprobe_path: ffprobe 可执行文件路径
        """
        self.ffprobe_path = ffprobe_path

    def get_media_info(self, path: str, timeout: int = 30) -> Tuple[bool, Dict[str, Any], Optional[str]]:
        """获取媒体信息

        Args:
            path: 视频文件路径
            timeout: 超时时间（秒）

        Returns:
            (成功标志, 媒体信息字典, 错误信息)
        """
        cmd = [
            self.ffprobe_path,
            "-hide_banner",
            "-loglevel", "error",
            "-show_format",
            "-show_streams",
            "-print_format", "json",
            path
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"ffprobe timeout after {timeout}s for {path}")
            return False, {}, f"ffprobe timeout ({timeout}s)"
        except FileNotFoundError:
            logger.error("ffprobe executable not found")
            return False, {}, "ffprobe not found"

        if result.returncode != 0:
            error_msg = result.stderr.strip() or "Unknown ffprobe error"
            logger.warning(f"ffprobe error (code {result.returncode}): {error_msg}")
            return False, {}, f"ffprobe failed: {error_msg}"

        try:
            raw_info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse ffprobe output: {e}, stdout: {result.stdout[:200]}")
            return False, {}, f"Failed to parse ffprobe output: {e}"

        return True, self._parse_media_info(raw_info), None

    def _parse_media_info(self, raw_info: Dict[str, Any]) -> Dict[str, Any]:
        """解析 ffprobe 输出的原始信息

        Args:
            raw_info: ffprobe 原始输出

        Returns:
            解析后的媒体信息
        """
        result = {
            "duration": 0.0,
            "format": "",
            "size": 0,
            "video_codec": "",
            "audio_codec": "",
            "subtitle_streams": [],
            "streams": [],
        }

        format_info = raw_info.get("format", {})
        result["format"] = format_info.get("format_name", "")
        result["size"] = int(format_info.get("size", 0) or 0)
        try:
            result["duration"] = float(format_info.get("duration", "0"))
        except (ValueError, TypeError):
            result["duration"] = 0.0

        for stream in raw_info.get("streams", []):
            codec_type = stream.get("codec_type", "")
            entry = {
                "codec_type": codec_type,
                "codec_name": stream.get("codec_name", ""),
                "index": stream.get("index", -1),
            }
            result["streams"].append(entry)

            if codec_type == "video" and not result["video_codec"]:
                result["video_codec"] = entry["codec_name"]
            elif codec_type == "audio" and not result["audio_codec"]:
                result["audio_codec"] = entry["codec_name"]
            elif codec_type == "subtitle":
                entry["language"] = (stream.get("tags") or {}).get("language", "")
                result["subtitle_streams"].append(entry)

        return result

    def count_subtitle_streams(self, path: str, timeout: int = 30) -> Tuple[bool, int, Optional[str]]:
        """快捷获取字幕流数量

        Returns:
            (成功标志, 字幕流数量, 错误信息)
        """
        success, media_info, error = self.get_media_info(path, timeout)
        if success:
            return True, len(media_info.get("subtitle_streams", [])), None
        return False, 0, error
