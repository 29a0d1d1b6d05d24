"""
videodepot

通过 HTTP 提供视频文件（支持 Range 断点播放），
并通过直链下载、磁力链接下载和 FFmpeg 转码填充视频目录。
"""

from .errors import (
    VideoDepotError,
    InvalidRequest,
    FilenameInvalid,
    InvalidRange,
    NotFound,
    RangeNotSatisfiable,
    IOFailure,
    UpstreamFailure,
)
from .config import ServerConfig, load_config
from .storage import MediaStorage, StoredFile
from .range_resolver import RangeSpec, resolve
from .media_server import MediaServer, MediaResponse
from .outcome import IngestOutcome, Settlement
from .url_ingest import UrlIngestor
from .swarm_ingest import SwarmIngestor, LibtorrentClient

__version__ = "1.0.0"

__all__ = [
    'VideoDepotError',
    'InvalidRequest',
    'FilenameInvalid',
    'InvalidRange',
    'NotFound',
    'RangeNotSatisfiable',
    'IOFailure',
    'UpstreamFailure',
    'ServerConfig',
    'load_config',
    'MediaStorage',
    'StoredFile',
    'RangeSpec',
    'resolve',
    'MediaServer',
    'MediaResponse',
    'IngestOutcome',
    'Settlement',
    'UrlIngestor',
    'SwarmIngestor',
    'LibtorrentClient',
]
