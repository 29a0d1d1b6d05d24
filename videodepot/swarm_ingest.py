"""
BT 磁力链接下载

每次调用创建一个独立的 BT 客户端，把磁力链接对应的全部内容下载到存储目录。
只监听两个终止事件：完成（done）和错误（error），先到者决定结果，
之后到达的事件被忽略。无论结果如何，客户端都会在返回前被销毁。
"""

import threading
import logging
from enum import Enum
from typing import Callable, Optional

from .errors import InvalidRequest, UpstreamFailure
from .outcome import IngestOutcome, Settlement
from .storage import MediaStorage

logger = logging.getLogger(__name__)

MAGNET_PREFIX = "magnet:?"


class SwarmState(Enum):
    JOINING = "joining"
    DOWNLOADING = "downloading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LibtorrentClient:
    """libtorrent 会话的简单封装

    add() 之后在后台线程中轮询 alert，把完成和错误事件转换为回调。
    """

    def __init__(self, listen_interfaces: str = "0.0.0.0:6881", poll_interval_ms: int = 500):
        try:
            import libtorrent as lt
        except ImportError:
            raise UpstreamFailure("libtorrent module not found. Please install it via: pip install libtorrent")

        self._lt = lt
        self._session = lt.session({
            'listen_interfaces': listen_interfaces,
            'alert_mask': lt.alert.category_t.error_notification | lt.alert.category_t.status_notification,
        })
        self._poll_interval_ms = poll_interval_ms
        self._handle = None
        self._thread = None
        self._stopped = threading.Event()

    def add(self, magnet_reference: str, save_path: str,
            on_done: Callable[[str], None], on_error: Callable[[str], None]):
        """加入磁力链接描述的 swarm

        Args:
            magnet_reference: 磁力链接
            save_path: 保存目录
            on_done: 下载完成回调，参数为种子名称
            on_error: 下载错误回调，参数为错误信息
        """
        params = self._lt.parse_magnet_uri(magnet_reference)
        params.save_path = save_path
        self._handle = self._session.add_torrent(params)
        self._thread = threading.Thread(
            target=self._alert_loop,
            args=(on_done, on_error),
            daemon=True,
            name="SwarmAlerts"
        )
        self._thread.start()

    def _alert_loop(self, on_done, on_error):
        lt = self._lt
        while not self._stopped.is_set():
            self._session.wait_for_alert(self._poll_interval_ms)
            if self._stopped.is_set():
                break
            for alert in self._session.pop_alerts():
                if isinstance(alert, lt.torrent_finished_alert):
                    on_done(self._handle.status().name)
                elif isinstance(alert, (lt.torrent_error_alert, lt.metadata_failed_alert, lt.file_error_alert)):
                    on_error(alert.message())

    def destroy(self):
        """释放会话资源"""
        self._stopped.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        if self._handle is not None and self._handle.is_valid():
            self._session.remove_torrent(self._handle)
        self._handle = None
        self._session = None


class SwarmSession:
    """单次 BT 下载的状态，持有一次性结算"""

    def __init__(self, magnet_reference: str, destination_dir: str):
        self.magnet_reference = magnet_reference
        self.destination_dir = destination_dir
        self.state = SwarmState.JOINING
        self.settlement = Settlement(label=magnet_reference[:60])

    def _enter(self, state: SwarmState):
        def transition():
            self.state = state
        return transition

    def start_downloading(self) -> bool:
        """joining -> downloading，已进入终态时不做任何改变"""
        return self.settlement.when_pending(self._enter(SwarmState.DOWNLOADING))

    def on_done(self, name: str):
        if self.settlement.succeed(name=name, on_settled=self._enter(SwarmState.SUCCEEDED)):
            logger.info(f"Torrent download complete: {name}")

    def on_error(self, reason: str):
        if self.settlement.fail(f"Error downloading torrent: {reason}", on_settled=self._enter(SwarmState.FAILED)):
            logger.error(f"Error downloading torrent: {reason}")


class SwarmIngestor:
    """通过磁力链接下载视频到存储目录"""

    def __init__(
        self,
        storage: MediaStorage,
        client_factory: Optional[Callable[[], object]] = None,
        timeout: Optional[float] = None,
        listen_interfaces: str = "0.0.0.0:6881"
    ):
        """初始化

        Args:
            storage: 存储目录
            client_factory: BT 客户端工厂，默认创建 LibtorrentClient
            timeout: 等待终止事件的超时时间（秒），None 表示一直等待
            listen_interfaces: libtorrent 监听地址
        """
        self.storage = storage
        self.timeout = timeout
        self.client_factory = client_factory or (lambda: LibtorrentClient(listen_interfaces))

    def ingest(self, magnet_reference: str) -> IngestOutcome:
        """下载磁力链接对应的内容

        Args:
            magnet_reference: 磁力链接

        Returns:
            IngestOutcome，成功时 name 为种子名称

        Raises:
            InvalidRequest: 磁力链接缺失或格式错误
        """
        if not magnet_reference:
            raise InvalidRequest("Magnet link is required")
        if not magnet_reference.startswith(MAGNET_PREFIX):
            raise InvalidRequest("Invalid magnet link")

        self.storage.ensure_root()
        session = SwarmSession(magnet_reference, self.storage.root)
        client = None
        try:
            client = self.client_factory()
            client.add(magnet_reference, self.storage.root, session.on_done, session.on_error)
            if session.start_downloading():
                logger.info(f"Downloading torrent: {magnet_reference[:80]}")

            outcome = session.settlement.wait(self.timeout)
            if outcome is None:
                session.on_error(f"timed out after {self.timeout}s")
        except Exception as e:
            logger.error(f"Error starting torrent download: {e}")
            session.on_error(str(e))
        finally:
            if client is not None:
                self._destroy(client)

        return session.settlement.outcome

    def _destroy(self, client):
        try:
            client.destroy()
        except Exception as e:
            logger.warning(f"Failed to destroy torrent client: {e}")
