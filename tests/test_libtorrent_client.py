import sys
import threading
import time
import types

import pytest

from videodepot.errors import UpstreamFailure
from videodepot.swarm_ingest import LibtorrentClient, SwarmIngestor

MAGNET = "magnet:?xt=urn:btih:c9e15763f722f23e98a29decdfae341b98d53056&dn=Cosmos+Laundromat"


class FakeAlert:
    def __init__(self, text=""):
        self._text = text

    def message(self):
        return self._text


class torrent_finished_alert(FakeAlert):
    pass


class torrent_error_alert(FakeAlert):
    pass


class metadata_failed_alert(FakeAlert):
    pass


class file_error_alert(FakeAlert):
    pass


class state_changed_alert(FakeAlert):
    pass


class FakeHandle:
    def __init__(self, name):
        self.name = name
        self.valid = True

    def status(self):
        return types.SimpleNamespace(name=self.name)

    def is_valid(self):
        return self.valid


class FakeLtSession:
    """Replays scripted alert batches, one batch per pop_alerts() call."""

    def __init__(self, settings, batches, torrent_name):
        self.settings = settings
        self.batches = list(batches)
        self.torrent_name = torrent_name
        self.added = []
        self.removed = []
        self.alert_thread = None
        self.thread_alive_at_remove = None
        self.drained = threading.Event()

    def add_torrent(self, params):
        self.added.append(params)
        return FakeHandle(self.torrent_name)

    def wait_for_alert(self, timeout_ms):
        time.sleep(min(timeout_ms, 10) / 1000)

    def pop_alerts(self):
        if self.batches:
            return self.batches.pop(0)
        self.drained.set()
        return []

    def remove_torrent(self, handle):
        if self.alert_thread is not None:
            self.thread_alive_at_remove = self.alert_thread.is_alive()
        handle.valid = False
        self.removed.append(handle)


def _install_libtorrent(monkeypatch, batches=(), torrent_name="Cosmos Laundromat"):
    sessions = []
    lt = types.ModuleType("libtorrent")
    lt.alert = types.SimpleNamespace(
        category_t=types.SimpleNamespace(error_notification=1, status_notification=64)
    )

    def session(settings):
        s = FakeLtSession(settings, batches, torrent_name)
        sessions.append(s)
        return s

    def parse_magnet_uri(uri):
        return types.SimpleNamespace(uri=uri, save_path=None)

    lt.session = session
    lt.parse_magnet_uri = parse_magnet_uri
    for alert_type in (torrent_finished_alert, torrent_error_alert, metadata_failed_alert,
                       file_error_alert, state_changed_alert):
        setattr(lt, alert_type.__name__, alert_type)

    monkeypatch.setitem(sys.modules, "libtorrent", lt)
    return sessions


def test_alerts_map_to_callbacks(monkeypatch, tmp_path):
    sessions = _install_libtorrent(monkeypatch, batches=[
        [state_changed_alert("downloading"), torrent_finished_alert("finished")],
        [torrent_error_alert("tracker error"), metadata_failed_alert("metadata failed")],
        [file_error_alert("file error")],
    ])
    done, errors = [], []

    client = LibtorrentClient(listen_interfaces="127.0.0.1:6999", poll_interval_ms=10)
    client.add(MAGNET, str(tmp_path), done.append, errors.append)
    lt_session = sessions[0]
    lt_session.alert_thread = client._thread

    assert lt_session.drained.wait(2)
    client.destroy()

    assert done == ["Cosmos Laundromat"]
    assert errors == ["tracker error", "metadata failed", "file error"]
    assert lt_session.settings["listen_interfaces"] == "127.0.0.1:6999"
    assert lt_session.settings["alert_mask"] == 1 | 64


def test_add_applies_save_path(monkeypatch, tmp_path):
    sessions = _install_libtorrent(monkeypatch)

    client = LibtorrentClient(poll_interval_ms=10)
    client.add(MAGNET, str(tmp_path), lambda name: None, lambda reason: None)
    client.destroy()

    params = sessions[0].added[0]
    assert params.uri == MAGNET
    assert params.save_path == str(tmp_path)


def test_destroy_stops_alert_thread_before_removing_torrent(monkeypatch, tmp_path):
    sessions = _install_libtorrent(monkeypatch)

    client = LibtorrentClient(poll_interval_ms=10)
    client.add(MAGNET, str(tmp_path), lambda name: None, lambda reason: None)
    lt_session = sessions[0]
    lt_session.alert_thread = alert_thread = client._thread

    client.destroy()

    assert lt_session.thread_alive_at_remove is False
    assert not alert_thread.is_alive()
    assert len(lt_session.removed) == 1
    assert not lt_session.removed[0].is_valid()

    # Second destroy is a no-op
    client.destroy()
    assert len(lt_session.removed) == 1


def test_destroy_without_add(monkeypatch):
    sessions = _install_libtorrent(monkeypatch)

    LibtorrentClient().destroy()

    assert sessions[0].removed == []


def test_missing_libtorrent_raises_install_hint(monkeypatch):
    monkeypatch.setitem(sys.modules, "libtorrent", None)

    with pytest.raises(UpstreamFailure) as exc_info:
        LibtorrentClient()
    assert "pip install libtorrent" in exc_info.value.message


def test_ingestor_default_client(monkeypatch, storage):
    sessions = _install_libtorrent(monkeypatch, batches=[[torrent_finished_alert("finished")]],
                                   torrent_name="Sintel")

    outcome = SwarmIngestor(storage, timeout=5, listen_interfaces="127.0.0.1:6999").ingest(MAGNET)

    assert outcome.succeeded
    assert outcome.name == "Sintel"
    lt_session = sessions[0]
    assert lt_session.added[0].save_path == storage.root
    assert len(lt_session.removed) == 1


def test_ingestor_default_client_error(monkeypatch, storage):
    sessions = _install_libtorrent(monkeypatch, batches=[[metadata_failed_alert("no metadata")]])

    outcome = SwarmIngestor(storage, timeout=5).ingest(MAGNET)

    assert not outcome.succeeded
    assert outcome.reason == "Error downloading torrent: no metadata"
    assert len(sessions[0].removed) == 1
