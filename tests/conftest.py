import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from videodepot.storage import MediaStorage
from videodepot.transcode import TranscodeConfig, TranscodeManager, FFmpegRunner


class FakeSwarmClient:
    """Stands in for LibtorrentClient; replays scripted terminal events."""

    def __init__(self, events=(), delay=None, add_error=None):
        self.events = list(events)
        self.delay = delay
        self.add_error = add_error
        self.added = []
        self.destroy_count = 0
        self._thread = None

    def add(self, magnet_reference, save_path, on_done, on_error):
        self.added.append((magnet_reference, save_path))
        if self.add_error is not None:
            raise self.add_error

        def fire():
            for kind, value in self.events:
                if kind == "done":
                    on_done(value)
                else:
                    on_error(value)

        if self.delay is None:
            fire()
        else:
            self._thread = threading.Timer(self.delay, fire)
            self._thread.daemon = True
            self._thread.start()

    def destroy(self):
        self.destroy_count += 1
        if self._thread is not None:
            self._thread.cancel()


class FakeResponse:
    """Minimal stand-in for a streamed requests.Response."""

    def __init__(self, body=b"", status_code=200, chunk_error=None):
        self.body = body
        self.status_code = status_code
        self.chunk_error = chunk_error
        self.closed = False
        self.chunk_sizes = []

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def iter_content(self, chunk_size=1):
        self.chunk_sizes.append(chunk_size)
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]
        if self.chunk_error is not None:
            raise self.chunk_error

    def close(self):
        self.closed = True


class RecordingFFmpegRunner(FFmpegRunner):
    """Records commands instead of spawning ffmpeg; writes the output file on success."""

    def __init__(self, config, succeed=True, error="Conversion failed!"):
        super().__init__(config)
        self.succeed = succeed
        self.error = error
        self.commands = []

    def run(self, command, timeout=None):
        self.commands.append(command)
        if not self.succeed:
            return False, self.error
        Path(command[-1]).write_bytes(b"transcoded")
        return True, None


class FakeFFprobeRunner:
    def __init__(self, subtitle_count=1, success=True):
        self.subtitle_count = subtitle_count
        self.success = success
        self.calls = []

    def count_subtitle_streams(self, path, timeout=30):
        self.calls.append(path)
        if not self.success:
            return False, 0, "ffprobe not found"
        return True, self.subtitle_count, None


@pytest.fixture
def video_dir(tmp_path):
    path = tmp_path / "videos"
    path.mkdir()
    return path


@pytest.fixture
def storage(video_dir):
    return MediaStorage(str(video_dir))


@pytest.fixture
def sample_video(video_dir):
    data = bytes(i % 256 for i in range(1000))
    (video_dir / "sample.mp4").write_bytes(data)
    return data


@pytest.fixture
def swarm_client():
    return FakeSwarmClient(events=[("done", "Big Buck Bunny")])


@pytest.fixture
def ffmpeg_runner():
    return RecordingFFmpegRunner(TranscodeConfig())


@pytest.fixture
def ffprobe_runner():
    return FakeFFprobeRunner()


@pytest.fixture
def transcode_manager(storage, ffmpeg_runner, ffprobe_runner):
    return TranscodeManager(
        TranscodeConfig(),
        storage,
        ffmpeg_runner=ffmpeg_runner,
        ffprobe_runner=ffprobe_runner,
    )


@pytest.fixture
def app(video_dir, swarm_client, transcode_manager):
    from webserver import create_app

    app = create_app(
        {"video_dir": str(video_dir), "chunk_size": 128},
        swarm_client_factory=lambda: swarm_client,
        transcode_manager=transcode_manager,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
