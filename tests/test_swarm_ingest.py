import threading

import pytest

from conftest import FakeSwarmClient
from videodepot.errors import InvalidRequest, UpstreamFailure
from videodepot.outcome import IngestOutcome, Settlement
from videodepot.swarm_ingest import SwarmIngestor, SwarmSession, SwarmState

MAGNET = "magnet:?xt=urn:btih:c9e15763f722f23e98a29decdfae341b98d53056&dn=Cosmos+Laundromat"


def _ingestor(storage, client, timeout=None):
    return SwarmIngestor(storage, client_factory=lambda: client, timeout=timeout)


def test_done_reports_name_and_releases_client(storage):
    client = FakeSwarmClient(events=[("done", "Cosmos Laundromat")])

    outcome = _ingestor(storage, client).ingest(MAGNET)

    assert outcome.succeeded
    assert outcome.name == "Cosmos Laundromat"
    assert client.added == [(MAGNET, storage.root)]
    assert client.destroy_count == 1


def test_error_reports_failure_and_releases_client(storage):
    client = FakeSwarmClient(events=[("error", "tracker unreachable")])

    outcome = _ingestor(storage, client).ingest(MAGNET)

    assert not outcome.succeeded
    assert "tracker unreachable" in outcome.reason
    assert client.destroy_count == 1
    with pytest.raises(UpstreamFailure):
        outcome.raise_for_failure()


def test_done_then_error_settles_once(storage):
    client = FakeSwarmClient(events=[("done", "first"), ("error", "late error")])

    outcome = _ingestor(storage, client).ingest(MAGNET)

    assert outcome.succeeded
    assert outcome.name == "first"
    assert client.destroy_count == 1


def test_error_then_done_settles_once(storage):
    client = FakeSwarmClient(events=[("error", "disk full"), ("done", "ignored")])

    outcome = _ingestor(storage, client).ingest(MAGNET)

    assert not outcome.succeeded
    assert "disk full" in outcome.reason
    assert client.destroy_count == 1


def test_events_from_background_thread(storage):
    client = FakeSwarmClient(events=[("done", "async name")], delay=0.05)

    outcome = _ingestor(storage, client).ingest(MAGNET)

    assert outcome.succeeded
    assert outcome.name == "async name"
    assert client.destroy_count == 1


def test_timeout_fails_and_releases_client(storage):
    client = FakeSwarmClient(events=[])

    outcome = _ingestor(storage, client, timeout=0.05).ingest(MAGNET)

    assert not outcome.succeeded
    assert "timed out" in outcome.reason
    assert client.destroy_count == 1


def test_add_failure_still_releases_client(storage):
    client = FakeSwarmClient(add_error=RuntimeError("invalid magnet"))

    outcome = _ingestor(storage, client).ingest(MAGNET)

    assert not outcome.succeeded
    assert "invalid magnet" in outcome.reason
    assert client.destroy_count == 1


def test_client_factory_failure_is_reported(storage):
    def factory():
        raise UpstreamFailure("libtorrent module not found")

    outcome = SwarmIngestor(storage, client_factory=factory).ingest(MAGNET)

    assert not outcome.succeeded
    assert "libtorrent" in outcome.reason


def test_each_call_gets_its_own_client(storage):
    clients = []

    def factory():
        client = FakeSwarmClient(events=[("done", f"t{len(clients)}")])
        clients.append(client)
        return client

    ingestor = SwarmIngestor(storage, client_factory=factory)
    assert ingestor.ingest(MAGNET).name == "t0"
    assert ingestor.ingest(MAGNET).name == "t1"
    assert [c.destroy_count for c in clients] == [1, 1]


@pytest.mark.parametrize("magnet", ["", None, "http://example.com/file.torrent"])
def test_invalid_magnet_creates_no_client(storage, magnet):
    created = []
    ingestor = SwarmIngestor(storage, client_factory=lambda: created.append(1))
    with pytest.raises(InvalidRequest):
        ingestor.ingest(magnet)
    assert created == []


def test_session_state_transitions():
    session = SwarmSession(MAGNET, "/tmp")
    assert session.state == SwarmState.JOINING

    session.on_error("boom")
    session.on_done("name")

    assert session.state == SwarmState.FAILED
    assert session.settlement.outcome.reason == "Error downloading torrent: boom"


def test_start_downloading_only_while_pending():
    session = SwarmSession(MAGNET, "/tmp")
    assert session.start_downloading()
    assert session.state == SwarmState.DOWNLOADING

    session.on_done("name")

    assert not session.start_downloading()
    assert session.state == SwarmState.SUCCEEDED


def test_done_during_add_keeps_terminal_state(storage):
    sessions = []

    class RecordingClient(FakeSwarmClient):
        def add(self, magnet_reference, save_path, on_done, on_error):
            sessions.append(on_done.__self__)
            super().add(magnet_reference, save_path, on_done, on_error)

    client = RecordingClient(events=[("done", "fast")])

    assert _ingestor(storage, client).ingest(MAGNET).succeeded
    assert sessions[0].state == SwarmState.SUCCEEDED


def test_settlement_single_fire_under_contention():
    settlement = Settlement()
    barrier = threading.Barrier(8)
    results = []

    def settle(i):
        barrier.wait()
        if i % 2:
            results.append(settlement.succeed(name=str(i)))
        else:
            results.append(settlement.fail(str(i)))

    threads = [threading.Thread(target=settle, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert settlement.settled
    assert isinstance(settlement.wait(0), IngestOutcome)


def test_settlement_wait_times_out():
    assert Settlement().wait(0.01) is None


def test_endpoint_success(client, swarm_client):
    response = client.post("/download/torrent", json={"magnetLink": MAGNET})
    assert response.status_code == 200
    assert response.data == b"Downloaded: Big Buck Bunny"
    assert swarm_client.destroy_count == 1


def test_endpoint_missing_magnet(client):
    response = client.post("/download/torrent", json={})
    assert response.status_code == 400
    assert response.data == b"Magnet link is required"


def test_endpoint_swarm_error(client, swarm_client):
    swarm_client.events = [("error", "no peers")]
    response = client.post("/download/torrent", json={"magnetLink": MAGNET})
    assert response.status_code == 500
    assert response.data.startswith(b"Error downloading torrent")
    assert swarm_client.destroy_count == 1
