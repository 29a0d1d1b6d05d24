"""
URL 直链下载

以流的方式把远程 HTTP(S) 资源写入存储目录，内存占用与文件大小无关。
不做重试；失败时已写入的部分文件保留在磁盘上，由调用方清理。
"""

import os
import logging
from enum import Enum
from urllib.parse import urlparse

import requests

from .errors import InvalidRequest, IOFailure, UpstreamFailure
from .outcome import IngestOutcome, Settlement
from .storage import MediaStorage

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class IngestState(Enum):
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class IngestionSession:
    """单次 URL 下载的状态"""

    def __init__(self, source_url: str, destination_filename: str):
        self.source_url = source_url
        self.destination_filename = destination_filename
        self.state = IngestState.FETCHING
        self.settlement = Settlement(label=destination_filename)

    def _enter(self, state: IngestState):
        def transition():
            self.state = state
        return transition

    def succeed(self, bytes_written: int) -> IngestOutcome:
        self.settlement.succeed(
            name=self.destination_filename,
            bytes_written=bytes_written,
            on_settled=self._enter(IngestState.SUCCEEDED)
        )
        return self.settlement.outcome

    def fail(self, reason: str, error_type=UpstreamFailure) -> IngestOutcome:
        if self.settlement.fail(reason, error_type, on_settled=self._enter(IngestState.FAILED)):
            logger.error(f"Error downloading video {self.source_url}: {reason}")
        return self.settlement.outcome


class UrlIngestor:
    """从 URL 下载视频到存储目录"""

    def __init__(self, storage: MediaStorage, timeout: int = 30, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.storage = storage
        self.timeout = timeout
        self.chunk_size = chunk_size

    def ingest(self, source_url: str, destination_filename: str) -> IngestOutcome:
        """下载 source_url 到 destination_filename

        目标文件已存在时会被覆盖。

        Args:
            source_url: 远程资源 URL
            destination_filename: 存储目录中的目标文件名

        Returns:
            IngestOutcome，每次调用只产生一个结果

        Raises:
            InvalidRequest: 参数缺失或 URL 协议不支持（不会发起任何 I/O）
            FilenameInvalid: 目标文件名不合法
        """
        if not source_url or not destination_filename:
            raise InvalidRequest("URL and filename are required")

        path = self.storage.path_for(destination_filename)
        if urlparse(source_url).scheme not in ("http", "https"):
            raise InvalidRequest(f"Unsupported URL scheme: {source_url}")

        session = IngestionSession(source_url, destination_filename)
        logger.info(f"Downloading {source_url} -> {destination_filename}")

        try:
            response = requests.get(source_url, stream=True, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            return session.fail(f"Failed to download video from URL: {e}")

        try:
            if not 200 <= response.status_code < 300:
                return session.fail(
                    f"Failed to download video from URL: remote server returned HTTP {response.status_code}"
                )
            bytes_written = self._write_stream(response, path)
        except requests.exceptions.RequestException as e:
            return session.fail(f"Failed to download video from URL: {e}")
        except OSError as e:
            return session.fail(f"Error writing {destination_filename}: {e}", IOFailure)
        finally:
            response.close()

        logger.info(f"Downloaded {bytes_written} bytes to {destination_filename}")
        return session.succeed(bytes_written)

    def _write_stream(self, response: requests.Response, path: str) -> int:
        self.storage.ensure_root()
        bytes_written = 0
        with open(path, 'wb') as f:
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if not chunk:
                    continue
                f.write(chunk)
                bytes_written += len(chunk)
            f.flush()
            os.fsync(f.fileno())
        return bytes_written
