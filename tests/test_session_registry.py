"""Tests for the worker process registry, using a stand-in worker module."""
from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

from meet_recorder.core.exceptions import RecorderException
from meet_recorder.domain.models import GoogleCredentials
from meet_recorder.services import SessionRegistry
from meet_recorder.services.session_registry import ERROR_LOG, PROCESS_LOG, WORKER_EXIT_ERROR
from meet_recorder.storage import SessionStore

URL = "https://meet.google.com/abc"


@pytest.fixture
def session_dir(tmp_path: Path) -> Path:
    path = tmp_path / "rec_1"
    path.mkdir()
    return path


async def wait_for_output(path: Path, timeout: float = 10.0) -> str:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if path.exists() and path.read_text().strip():
            return path.read_text()
        await asyncio.sleep(0.05)
    raise AssertionError(f"no output in {path.name}")


async def wait_for_status(store: SessionStore, session_id: str, status: str, timeout: float = 10.0) -> dict:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        document = store.read(session_id)
        if document["status"] == status:
            return document
        await asyncio.sleep(0.02)
    raise AssertionError(f"{session_id} never reached {status}: {store.read(session_id)['status']}")


async def wait_untracked(registry: SessionRegistry, session_id: str) -> None:
    # The watcher task runs after the process is reaped
    for _ in range(250):
        if registry.get(session_id) is None and session_id not in registry._watchers:
            return
        await asyncio.sleep(0.02)
    raise AssertionError(f"{session_id} still tracked")


def process_alive(pid: int) -> bool:
    """True unless ``pid`` is gone or a zombie."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except (FileNotFoundError, ProcessLookupError):
        return False
    return state != "Z"


class TestSessionRegistry:

    def test_spawn_and_stop(self, worker_module: str, session_dir: Path):
        registry = SessionRegistry(worker_module=worker_module)

        async def scenario():
            process = await registry.spawn("rec_1", URL, {"bitrate": "320k"}, session_dir)
            assert registry.is_active("rec_1")
            assert registry.active_count == 1
            assert registry.active_ids() == ["rec_1"]

            output = json.loads(await wait_for_output(session_dir / PROCESS_LOG))
            assert output["argv"] == ["rec_1", URL, json.dumps({"bitrate": "320k"})]
            assert output["email"] is None

            assert registry.stop("rec_1") is True
            # Tracked until it exits, but only signalled once
            assert registry.stop("rec_1") is False
            assert await asyncio.wait_for(process.wait(), timeout=10) == 0
            await wait_untracked(registry, "rec_1")
            assert not registry.is_active("rec_1")

        asyncio.run(scenario())
        assert "worker stderr line" in (session_dir / ERROR_LOG).read_text()

    def test_credentials_passed_by_environment_only(self, worker_module: str, session_dir: Path):
        registry = SessionRegistry(worker_module=worker_module)
        creds = GoogleCredentials("bot@example.com", "hunter2")

        async def scenario():
            process = await registry.spawn("rec_1", URL, {}, session_dir, creds)
            output = json.loads(await wait_for_output(session_dir / PROCESS_LOG))
            assert registry.kill("rec_1") is True
            await asyncio.wait_for(process.wait(), timeout=10)
            return output

        output = asyncio.run(scenario())
        assert output["email"] == "bot@example.com"
        assert output["password"] == "hunter2"
        assert "hunter2" not in " ".join(output["argv"])

    def test_exit_untracks(self, worker_module: str, session_dir: Path, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_EXIT", "1")
        registry = SessionRegistry(worker_module=worker_module)

        async def scenario():
            process = await registry.spawn("rec_1", URL, {}, session_dir)
            await asyncio.wait_for(process.wait(), timeout=10)
            await wait_untracked(registry, "rec_1")
            assert not registry.is_active("rec_1")
            assert registry.stop("rec_1") is False

        asyncio.run(scenario())

    def test_duplicate_spawn_rejected(self, worker_module: str, session_dir: Path):
        registry = SessionRegistry(worker_module=worker_module)

        async def scenario():
            await registry.spawn("rec_1", URL, {}, session_dir)
            try:
                with pytest.raises(RecorderException):
                    await registry.spawn("rec_1", URL, {}, session_dir)
            finally:
                await registry.shutdown(timeout=5)

        asyncio.run(scenario())
        assert registry.active_count == 0

    def test_shutdown_without_workers(self):
        asyncio.run(SessionRegistry().shutdown())


class TestWorkerExit:
    """Session status after the worker process ends."""

    def test_crash_after_recording_fails_session(self, worker_module, store, make_session, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_MODE", "crash")
        session_id = make_session()
        registry = SessionRegistry(store, worker_module=worker_module)

        async def scenario():
            process = await registry.spawn(session_id, URL, {}, store.session_dir(session_id))
            await wait_for_status(store, session_id, "recording")
            assert await asyncio.wait_for(process.wait(), timeout=10) == 137
            await wait_untracked(registry, session_id)

        asyncio.run(scenario())
        document = store.read(session_id)
        assert document["status"] == "failed"
        assert "code 137" in document["error"]
        assert document["error_type"] == WORKER_EXIT_ERROR
        assert document["failed_at"]

    def test_worker_reported_failure_is_kept(self, worker_module, store, make_session, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_MODE", "fail")
        session_id = make_session()
        registry = SessionRegistry(store, worker_module=worker_module)

        async def scenario():
            process = await registry.spawn(session_id, URL, {}, store.session_dir(session_id))
            assert await asyncio.wait_for(process.wait(), timeout=10) == 1
            await wait_untracked(registry, session_id)

        asyncio.run(scenario())
        document = store.read(session_id)
        assert document["error"] == "Entry to the meeting was denied"
        assert document["error_type"] == "AccessDeniedError"

    def test_clean_stop_completes(self, worker_module, store, make_session, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_MODE", "full")
        session_id = make_session()
        registry = SessionRegistry(store, worker_module=worker_module)

        async def scenario():
            process = await registry.spawn(session_id, URL, {}, store.session_dir(session_id))
            await wait_for_status(store, session_id, "recording")
            assert registry.stop(session_id) is True
            assert await asyncio.wait_for(process.wait(), timeout=10) == 0
            await wait_untracked(registry, session_id)

        asyncio.run(scenario())
        document = store.read(session_id)
        assert document["status"] == "completed"
        assert document["files"] == {"mp3": "processed_recording.mp3"}


class TestTermination:
    """Process groups, graceful termination and shutdown."""

    def test_worker_leads_its_own_process_group(self, worker_module: str, session_dir: Path):
        registry = SessionRegistry(worker_module=worker_module)

        async def scenario():
            process = await registry.spawn("rec_1", URL, {}, session_dir)
            try:
                assert os.getpgid(process.pid) == process.pid
                assert os.getpgid(process.pid) != os.getpgrp()
            finally:
                await registry.shutdown(timeout=5)

        asyncio.run(scenario())

    def test_kill_reaches_worker_children(self, worker_module: str, session_dir: Path, tmp_path: Path, monkeypatch):
        pid_file = tmp_path / "child.pid"
        monkeypatch.setenv("FAKE_WORKER_MODE", "child")
        monkeypatch.setenv("FAKE_WORKER_CHILD_PID", str(pid_file))
        registry = SessionRegistry(worker_module=worker_module)

        async def scenario():
            process = await registry.spawn("rec_1", URL, {}, session_dir)
            child_pid = int(await wait_for_output(pid_file))
            assert process_alive(child_pid)

            assert registry.kill("rec_1") is True
            await asyncio.wait_for(process.wait(), timeout=10)
            for _ in range(250):
                if not process_alive(child_pid):
                    break
                await asyncio.sleep(0.02)
            return child_pid

        child_pid = asyncio.run(scenario())
        assert not process_alive(child_pid)

    def test_terminate_lets_cooperative_worker_exit(self, worker_module: str, session_dir: Path):
        registry = SessionRegistry(worker_module=worker_module)

        async def scenario():
            process = await registry.spawn("rec_1", URL, {}, session_dir)
            await wait_for_output(session_dir / PROCESS_LOG)
            assert await registry.terminate("rec_1", timeout=10) is True
            assert process.returncode == 0
            assert await registry.terminate("rec_1", timeout=10) is False

        asyncio.run(scenario())

    def test_terminate_escalates_to_kill(self, worker_module, store, make_session, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_MODE", "ignore_term")
        session_id = make_session()
        registry = SessionRegistry(store, worker_module=worker_module)

        async def scenario():
            process = await registry.spawn(session_id, URL, {}, store.session_dir(session_id))
            await wait_for_status(store, session_id, "recording")
            assert await registry.terminate(session_id, timeout=0.3) is True
            assert process.returncode == -9
            await wait_untracked(registry, session_id)

        asyncio.run(scenario())
        document = store.read(session_id)
        assert document["status"] == "failed"
        assert "code -9" in document["error"]

    def test_shutdown_waits_for_processing(self, worker_module, store, make_session, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_MODE", "full")
        session_id = make_session()
        registry = SessionRegistry(store, worker_module=worker_module)

        async def scenario():
            await registry.spawn(session_id, URL, {}, store.session_dir(session_id))
            await wait_for_status(store, session_id, "recording")
            await registry.shutdown(timeout=10)

        asyncio.run(scenario())
        assert store.read(session_id)["status"] == "completed"
        assert registry.active_count == 0

    def test_shutdown_kills_stuck_worker_and_fails_session(self, worker_module, store, make_session, monkeypatch):
        monkeypatch.setenv("FAKE_WORKER_MODE", "ignore_term")
        session_id = make_session()
        registry = SessionRegistry(store, worker_module=worker_module)

        async def scenario():
            await registry.spawn(session_id, URL, {}, store.session_dir(session_id))
            await wait_for_status(store, session_id, "recording")
            await registry.shutdown(timeout=0.3)

        asyncio.run(scenario())
        assert store.read(session_id)["status"] == "failed"
        assert registry.active_count == 0
