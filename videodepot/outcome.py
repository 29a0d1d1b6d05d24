"""
下载结果与一次性结算

下载（URL 或 BT）的最终结果只能报告一次。Settlement 用锁保护
pending -> succeeded/failed 的状态转换，进入终态后不再接受新的结果。
"""

import threading
import logging
from typing import Callable, Optional, Type
from dataclasses import dataclass

from .errors import VideoDepotError, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class IngestOutcome:
    """一次下载的最终结果"""

    succeeded: bool
    name: Optional[str] = None
    reason: Optional[str] = None
    bytes_written: int = 0
    error_type: Type[VideoDepotError] = UpstreamFailure

    @classmethod
    def success(cls, name: Optional[str] = None, bytes_written: int = 0) -> 'IngestOutcome':
        return cls(succeeded=True, name=name, bytes_written=bytes_written)

    @classmethod
    def failure(cls, reason: str, error_type: Type[VideoDepotError] = UpstreamFailure) -> 'IngestOutcome':
        return cls(succeeded=False, reason=reason, error_type=error_type)

    def raise_for_failure(self):
        """失败时抛出对应的业务异常"""
        if not self.succeeded:
            raise self.error_type(self.reason or "Download failed")


class Settlement:
    """只能结算一次的结果容器

    多个事件源（例如 BT 的 done 和 error）可以在任意线程中调用 settle，
    只有第一次调用生效。
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._outcome: Optional[IngestOutcome] = None

    def settle(self, outcome: IngestOutcome, on_settled: Optional[Callable[[], None]] = None) -> bool:
        """尝试写入最终结果

        Args:
            outcome: 下载结果
            on_settled: 生效时在锁内执行的回调（用于同步更新调用方的状态）

        Returns:
            是否生效（已处于终态时返回 False）
        """
        with self._lock:
            if self._outcome is not None:
                logger.debug(f"Ignoring late outcome for {self.label}: {outcome}")
                return False
            self._outcome = outcome
            if on_settled is not None:
                on_settled()
            self._event.set()
            return True

    def when_pending(self, action: Callable[[], None]) -> bool:
        """尚未结算时在锁内执行 action，返回是否执行"""
        with self._lock:
            if self._outcome is not None:
                return False
            action()
            return True

    def succeed(self, name: Optional[str] = None, bytes_written: int = 0, on_settled=None) -> bool:
        return self.settle(IngestOutcome.success(name=name, bytes_written=bytes_written), on_settled)

    def fail(self, reason: str, error_type: Type[VideoDepotError] = UpstreamFailure, on_settled=None) -> bool:
        return self.settle(IngestOutcome.failure(reason, error_type), on_settled)

    def wait(self, timeout: Optional[float] = None) -> Optional[IngestOutcome]:
        """等待结算

        Args:
            timeout: 超时时间（秒），None 表示一直等待

        Returns:
            结算结果；超时返回 None
        """
        self._event.wait(timeout)
        return self._outcome

    @property
    def settled(self) -> bool:
        return self._event.is_set()

    @property
    def outcome(self) -> Optional[IngestOutcome]:
        return self._outcome
