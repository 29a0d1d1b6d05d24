"""
服务配置模块

配置来源（优先级从高到低）：
- 环境变量 VIDEO_DIR / HOST / PORT
- 配置文件 config/config.json
- 代码中的默认值
"""

import os
import json
import copy
import logging
from typing import Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CONFIG_FILE = os.environ.get("VIDEODEPOT_CONFIG", "config/config.json")

DEFAULT_CONFIG = {
    "video_dir": "videos",
    "host": "0.0.0.0",
    "port": 3000,
    "chunk_size": 64 * 1024,
    "download": {
        "timeout": 30,
        "chunk_size": 64 * 1024,
    },
    "torrent": {
        "timeout": None,
        "listen_interfaces": "0.0.0.0:6881",
    },
    "logging": {
        "log_dir": "logs",
        "backup_count": 3,
    },
    "transcode": {
        "ffmpeg_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "loglevel": "warning",
        "video_codec": "libx264",
        "audio_codec": "aac",
        "crf": 28,
        "preset": "medium",
        "max_concurrent_tasks": 2,
        "task_timeout": 3600,
        "probe_timeout": 30,
    },
}


@dataclass
class ServerConfig:
    """服务配置

    从全局配置字典中读取服务相关参数，提供默认值。
    """

    video_dir: str = "videos"
    host: str = "0.0.0.0"
    port: int = 3000

    # 读取视频文件时的块大小（字节）
    chunk_size: int = 64 * 1024

    # URL 下载
    download_timeout: int = 30
    download_chunk_size: int = 64 * 1024

    # BT 下载，None 表示不限时（与原有行为一致）
    swarm_timeout: Optional[float] = None
    swarm_listen_interfaces: str = "0.0.0.0:6881"

    # 日志
    log_dir: str = "logs"
    log_backup_count: int = 3

    @classmethod
    def from_app_config(cls, app_config: dict) -> 'ServerConfig':
        """从应用配置创建 ServerConfig

        Args:
            app_config: 全局配置字典

        Returns:
            ServerConfig 实例
        """
        config = cls()

        if app_config.get("video_dir"):
            config.video_dir = app_config["video_dir"]
        if app_config.get("host"):
            config.host = app_config["host"]
        if "port" in app_config:
            config.port = int(app_config["port"] or 3000)
        if "chunk_size" in app_config:
            config.chunk_size = int(app_config["chunk_size"] or config.chunk_size)

        download_config = app_config.get("download", {}) or {}
        if "timeout" in download_config:
            config.download_timeout = int(download_config["timeout"] or 30)
        if "chunk_size" in download_config:
            config.download_chunk_size = int(download_config["chunk_size"] or config.download_chunk_size)

        torrent_config = app_config.get("torrent", {}) or {}
        if torrent_config.get("timeout"):
            config.swarm_timeout = float(torrent_config["timeout"])
        if torrent_config.get("listen_interfaces"):
            config.swarm_listen_interfaces = torrent_config["listen_interfaces"]

        logging_config = app_config.get("logging", {}) or {}
        if logging_config.get("log_dir"):
            config.log_dir = logging_config["log_dir"]
        if "backup_count" in logging_config:
            config.log_backup_count = int(logging_config["backup_count"] or 3)

        return config


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_file: Optional[str] = None) -> dict:
    """加载配置文件

    配置文件不存在时写入默认配置。环境变量覆盖文件中的值。

    Args:
        config_file: 配置文件路径，默认为 CONFIG_FILE

    Returns:
        合并后的配置字典
    """
    config_file = config_file or CONFIG_FILE
    config = copy.deepcopy(DEFAULT_CONFIG)
    try:
        if os.path.exists(config_file):
            with open(config_file, 'r', encoding='utf-8') as f:
                _merge(config, json.load(f))
            logger.info(f"Loaded configuration file: {config_file}")
        else:
            config_dir = os.path.dirname(config_file)
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)
            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config, f, ensure_ascii=False, indent=2)
            logger.info(f"Created default configuration file: {config_file}")
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load configuration file: {str(e)}")

    # 环境变量优先
    if os.environ.get("VIDEO_DIR"):
        config["video_dir"] = os.environ["VIDEO_DIR"]
    if os.environ.get("HOST"):
        config["host"] = os.environ["HOST"]
    if os.environ.get("PORT"):
        config["port"] = int(os.environ["PORT"])

    return config
