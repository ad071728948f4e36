"""
Session Registry - tracks the live worker process of each session.

Each session runs in its own ``python -m meet_recorder.worker`` process
with stdout appended to ``process.log`` and stderr to ``error.log`` in the
session directory. Workers lead their own process group, so a kill also
reaches the encoder and browser they started. A watcher task untracks the
worker when it exits and fails the session if the worker died without
writing a final status.
"""

from __future__ import annotations

import asyncio
import json
import os
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from meet_recorder.config import get_logger
from meet_recorder.core.exceptions import (
    InvalidTransitionError,
    RecorderException,
    SessionNotFoundError,
)
from meet_recorder.domain.models import GoogleCredentials, SessionStatus, utc_now
from meet_recorder.storage import SessionStore
from meet_recorder.worker import EMAIL_ENV, PASSWORD_ENV

logger = get_logger("session_registry")

WORKER_MODULE = "meet_recorder.worker"
PROCESS_LOG = "process.log"
ERROR_LOG = "error.log"
WORKER_EXIT_ERROR = "WorkerExitError"


class SessionRegistry:
    """In-memory map of session id to worker process, owned by one app instance."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        python_executable: Optional[str] = None,
        worker_module: str = WORKER_MODULE,
    ):
        """
        Args:
            store: Session store used to fail sessions whose worker died
            python_executable: Interpreter running the workers
            worker_module: Module run with ``-m`` for each session
        """
        self.store = store
        self.python_executable = python_executable or sys.executable
        self.worker_module = worker_module
        self._processes: Dict[str, asyncio.subprocess.Process] = {}
        self._watchers: Dict[str, asyncio.Task] = {}
        self._stopping: Set[str] = set()

    async def spawn(
        self,
        session_id: str,
        meet_url: str,
        options: Dict[str, Any],
        session_dir: Path,
        credentials: Optional[GoogleCredentials] = None,
    ) -> asyncio.subprocess.Process:
        """
        Start the worker process for a session and track it.

        Raises:
            RecorderException: If the session already has a worker.
            OSError: If the process cannot be spawned.
        """
        if self.is_active(session_id):
            raise RecorderException(f"Recording {session_id} already has a worker")

        env = os.environ.copy()
        env.pop(EMAIL_ENV, None)
        env.pop(PASSWORD_ENV, None)
        if credentials is not None:
            env[EMAIL_ENV] = credentials.email
            env[PASSWORD_ENV] = credentials.password

        session_dir = Path(session_dir)
        with open(session_dir / PROCESS_LOG, "ab") as out, open(session_dir / ERROR_LOG, "ab") as err:
            process = await asyncio.create_subprocess_exec(
                self.python_executable, "-m", self.worker_module,
                session_id, meet_url, json.dumps(options),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=out,
                stderr=err,
                env=env,
                start_new_session=True,
            )

        self._processes[session_id] = process
        self._watchers[session_id] = asyncio.create_task(self._watch(session_id, process))
        logger.info(f"🚀 Worker {process.pid} started for {session_id}")
        return process

    async def _watch(self, session_id: str, process: asyncio.subprocess.Process) -> None:
        code = await process.wait()
        if code == 0:
            logger.info(f"Worker {process.pid} for {session_id} exited cleanly")
        else:
            logger.warning(f"Worker {process.pid} for {session_id} exited with code {code}")
            self._fail_session(session_id, code)
        if self._processes.get(session_id) is process:
            del self._processes[session_id]
            self._stopping.discard(session_id)
        if self._watchers.get(session_id) is asyncio.current_task():
            del self._watchers[session_id]

    def _fail_session(self, session_id: str, code: int) -> None:
        """Mark the session failed unless the worker already wrote a final status."""
        if self.store is None:
            return
        try:
            self.store.merge(session_id, {
                "status": SessionStatus.FAILED.value,
                "error": f"Recording worker exited with code {code}",
                "error_type": WORKER_EXIT_ERROR,
                "failed_at": utc_now(),
            })
            logger.error(f"❌ Session {session_id} failed: worker exited with code {code}")
        except (InvalidTransitionError, SessionNotFoundError):
            pass

    def get(self, session_id: str) -> Optional[asyncio.subprocess.Process]:
        return self._processes.get(session_id)

    def is_active(self, session_id: str) -> bool:
        process = self._processes.get(session_id)
        return process is not None and process.returncode is None

    def active_ids(self) -> List[str]:
        return [sid for sid in self._processes if self.is_active(sid)]

    @property
    def active_count(self) -> int:
        return len(self.active_ids())

    def stop(self, session_id: str) -> bool:
        """
        Ask a worker to stop (SIGTERM).

        Only the worker itself is signalled; it stops its encoder and
        browser on its own. The worker stays tracked until it exits.

        Returns:
            False if no live worker was tracked for ``session_id`` or it
            was already asked to stop.
        """
        process = self._processes.get(session_id)
        if process is None or process.returncode is not None or session_id in self._stopping:
            return False
        try:
            process.send_signal(signal.SIGTERM)
        except ProcessLookupError:
            return False
        self._stopping.add(session_id)
        logger.info(f"Sent SIGTERM to worker {process.pid} ({session_id})")
        return True

    def kill(self, session_id: str) -> bool:
        """Force-kill a worker's whole process group (SIGKILL)."""
        process = self._processes.get(session_id)
        if process is None or process.returncode is not None:
            return False
        return self._kill_group(session_id, process)

    async def terminate(self, session_id: str, timeout: float) -> bool:
        """
        SIGTERM a worker, then kill its process group if it is still
        running after ``timeout`` seconds.

        Returns:
            False if no live worker was tracked for ``session_id``.
        """
        process = self._processes.get(session_id)
        if process is None or process.returncode is not None:
            return False
        self.stop(session_id)
        await self._wait_or_kill(session_id, process, timeout)
        return True

    async def shutdown(self, timeout: float = 300.0) -> None:
        """Terminate every tracked worker, killing those that outlive ``timeout``."""
        processes = {sid: p for sid, p in self._processes.items() if p.returncode is None}
        if processes:
            logger.info(f"Stopping {len(processes)} active worker(s)...")
            for session_id in processes:
                self.stop(session_id)
            await asyncio.gather(*(
                self._wait_or_kill(session_id, process, timeout)
                for session_id, process in processes.items()
            ))

        # Watchers record the exit status of killed workers
        watchers = list(self._watchers.values())
        if watchers:
            await asyncio.gather(*watchers, return_exceptions=True)
        self._watchers.clear()

    async def _wait_or_kill(self, session_id: str, process: asyncio.subprocess.Process, timeout: float) -> None:
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Worker {process.pid} ({session_id}) did not exit within {timeout:g}s; killing")
            self._kill_group(session_id, process)
            await process.wait()

    def _kill_group(self, session_id: str, process: asyncio.subprocess.Process) -> bool:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            return False
        logger.info(f"Sent SIGKILL to worker group {process.pid} ({session_id})")
        return True
