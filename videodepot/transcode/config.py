"""
转码配置模块

定义转码相关的配置参数和默认值。
"""

from dataclasses import dataclass


@dataclass
class TranscodeConfig:
    """转码配置

    从全局配置中读取转码相关参数，提供默认值。
    """

    # 可执行文件
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # FFmpeg 日志级别
    loglevel: str = "warning"

    # 编码格式转换的默认编码器
    video_codec: str = "libx264"
    audio_codec: str = "aac"

    # 压缩参数
    crf: int = 28  # 0-51，越大体积越小
    preset: str = "medium"

    # 并发限制
    max_concurrent_tasks: int = 2

    # 超时配置
    task_timeout: int = 3600  # ffmpeg 单次执行超时时间（秒）
    probe_timeout: int = 30  # ffprobe 探测超时时间（秒）

    @classmethod
    def from_app_config(cls, app_config: dict) -> 'TranscodeConfig':
        """从应用配置创建 TranscodeConfig

        Args:
            app_config: 全局配置字典

        Returns:
            TranscodeConfig 实例
        """
        transcode_config = app_config.get("transcode", {}) or {}

        config = cls()

        if transcode_config.get("ffmpeg_path"):
            config.ffmpeg_path = transcode_config["ffmpeg_path"]
        if transcode_config.get("ffprobe_path"):
            config.ffprobe_path = transcode_config["ffprobe_path"]
        if transcode_config.get("loglevel"):
            config.loglevel = transcode_config["loglevel"]

        if transcode_config.get("video_codec"):
            config.video_codec = transcode_config["video_codec"]
        if transcode_config.get("audio_codec"):
            config.audio_codec = transcode_config["audio_codec"]

        if "crf" in transcode_config:
            config.crf = int(transcode_config["crf"] if transcode_config["crf"] is not None else 28)
        if transcode_config.get("preset"):
            config.preset = transcode_config["preset"]

        if "max_concurrent_tasks" in transcode_config:
            config.max_concurrent_tasks = int(transcode_config["max_concurrent_tasks"] or 2)
        if "task_timeout" in transcode_config:
            config.task_timeout = int(transcode_config["task_timeout"] or 3600)
        if "probe_timeout" in transcode_config:
            config.probe_timeout = int(transcode_config["probe_timeout"] or 30)

        return config
