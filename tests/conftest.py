"""Shared pytest fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from meet_recorder.config import (
    BrowserSettings,
    RecordingSettings,
    RetentionSettings,
    Settings,
)
from meet_recorder.domain.models import AuthContext, CaptureOptions, new_session_document
from meet_recorder.storage import SessionStore

# Stand-in for ffmpeg. Capture mode (``-f pulse``) prints progress blocks
# and appends to the output until 'q' arrives on stdin; any other call is a
# transcode that copies the input. Behaviour is switched with env vars.
FAKE_FFMPEG = r'''#!__PYTHON__
import os
import select
import os
import sys
import time

args = sys.argv[1:]
output = args[-1]

if "pulse" in args:
    if os.environ.get("FAKE_FFMPEG_FAIL_START"):
        sys.stderr.write("pulse: Connection refused\n")
        sys.exit(1)
    if os.environ.get("FAKE_FFMPEG_SILENT"):
        time.sleep(30)
        sys.exit(0)

    exit_after = float(os.environ.get("FAKE_FFMPEG_EXIT_AFTER", "0") or 0)
    started = time.time()
    with open(output, "wb") as f:
        while True:
            sys.stdout.write("out_time_ms=0\nprogress=continue\n")
            sys.stdout.flush()
            f.write(b"\x00" * 1024)
            f.flush()
            if exit_after and time.time() - started > exit_after:
                sys.exit(1)
            ready, _, _ = select.select([sys.stdin], [], [], 0.05)
            if ready:
                data = os.read(sys.stdin.fileno(), 1)
                if data in (b"q", b""):
                    break
    sys.stdout.write("progress=end\n")
    sys.stdout.flush()
    sys.exit(0)

if os.environ.get("FAKE_FFMPEG_FAIL_TRANSCODE"):
    sys.stderr.write("Conversion failed!\n")
    sys.exit(1)

source = args[args.index("-i") + 1]
with open(source, "rb") as src, open(output, "wb") as dst:
    dst.write(src.read())
    dst.write(output.encode())
sys.exit(0)
'''


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> str:
    """Executable fake ffmpeg script."""
    path = tmp_path / "bin" / "ffmpeg"
    path.parent.mkdir()
    path.write_text(FAKE_FFMPEG.replace("__PYTHON__", sys.executable))
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def settings(tmp_path: Path, fake_ffmpeg: str) -> Settings:
    """Settings with tmp directories, the fake encoder and short timings."""
    return Settings(
        recording=RecordingSettings(
            recordings_dir=str(tmp_path / "recordings"),
            allowed_meeting_hosts=["meet.google.com", "meet.example"],
            ffmpeg_binary=fake_ffmpeg,
            init_wait_seconds=2,
            start_poll_interval_seconds=0.02,
            monitor_interval_seconds=0.05,
            meeting_end_recheck_seconds=0.01,
            capture_start_timeout_seconds=5,
            stop_grace_seconds=2,
        ),
        browser=BrowserSettings(
            settle_seconds=0,
            admission_timeout_seconds=1,
            debug_screenshots=False,
        ),
        retention=RetentionSettings(enabled=False),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def store(settings: Settings) -> SessionStore:
    return SessionStore(settings.recordings_dir)


@pytest.fixture
def make_session(store: SessionStore, settings: Settings):
    """Factory creating a session document in ``store``."""

    def _make(
        session_id: str = "rec_1700000000000_abcdef123456",
        meet_url: str = "https://meet.example/test-1",
        options: dict = None,
        auth: AuthContext = None,
    ) -> str:
        capture_options = CaptureOptions.from_request(options, settings.recording)
        document = new_session_document(
            session_id,
            meet_url,
            capture_options,
            auth or AuthContext(),
            str(store.session_dir(session_id)),
        )
        store.create(session_id, document)
        return session_id

    return _make


# Stand-in for ``meet_recorder.worker``. Prints its argv and credential env
# to process.log, then behaves according to FAKE_WORKER_MODE:
#   ""            wait for SIGTERM, exit 0
#   full          launching/joining/recording, then on SIGTERM processing
#                 and completed with one output file
#   crash         reach recording, then die without a final status
#   fail          write its own failed status, exit 1
#   ignore_term   reach recording and ignore SIGTERM
#   child         start a long-running child process, wait for SIGTERM
FAKE_WORKER = r'''
import json
import os
import signal
import subprocess
import os
import sys
import time

session_id = sys.argv[1]
mode = os.environ.get("FAKE_WORKER_MODE", "")

stop_requested = []
if mode == "ignore_term":
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
else:
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_requested.append(signum))

print(json.dumps({
    "argv": sys.argv[1:],
    "email": os.environ.get("MEET_RECORDER_GOOGLE_EMAIL"),
    "password": os.environ.get("MEET_RECORDER_GOOGLE_PASSWORD"),
}), flush=True)
sys.stderr.write("worker stderr line\n")
sys.stderr.flush()

exit_code = os.environ.get("FAKE_WORKER_EXIT")
if exit_code:
    sys.exit(int(exit_code))

store = None
if os.environ.get("FAKE_WORKER_RECORDINGS"):
    from meet_recorder.storage import SessionStore
    store = SessionStore(os.environ["FAKE_WORKER_RECORDINGS"])

if mode in ("full", "crash", "ignore_term"):
    for status in ("launching", "joining", "recording"):
        store.merge(session_id, {"status": status})

if mode == "crash":
    time.sleep(0.3)
    os._exit(137)

if mode == "fail":
    store.merge(session_id, {
        "status": "failed",
        "error": "Entry to the meeting was denied",
        "error_type": "AccessDeniedError",
    })
    sys.exit(1)

if mode == "child":
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    with open(os.environ["FAKE_WORKER_CHILD_PID"], "w") as f:
        f.write(str(child.pid))

deadline = time.time() + 30
while not stop_requested and time.time() < deadline:
    time.sleep(0.02)

if mode == "full" and stop_requested:
    store.merge(session_id, {"status": "processing", "stop_reason": "stop_requested"})
    output = os.path.join(str(store.session_dir(session_id)), "processed_recording.mp3")
    with open(output, "wb") as f:
        f.write(b"ID3 fake audio")
    store.merge(session_id, {"status": "completed", "files": {"mp3": "processed_recording.mp3"}})

sys.exit(0 if stop_requested else 3)
'''

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def worker_module(tmp_path: Path, settings: Settings, monkeypatch) -> str:
    """Module name of the stand-in worker, importable by spawned interpreters."""
    modules = tmp_path / "modules"
    modules.mkdir()
    (modules / "fake_worker.py").write_text(FAKE_WORKER)
    monkeypatch.setenv("PYTHONPATH", os.pathsep.join([str(modules), str(PROJECT_ROOT)]))
    monkeypatch.setenv("FAKE_WORKER_RECORDINGS", settings.recordings_dir)
    monkeypatch.delenv("FAKE_WORKER_MODE", raising=False)
    monkeypatch.delenv("FAKE_WORKER_EXIT", raising=False)
    return "fake_worker"
