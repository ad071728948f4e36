"""
Session Store - one JSON metadata document per recording session.

The API process and the session's worker process both write the same
document, so every update is a read-merge-write under an exclusive
``flock`` on a lock file in the session directory, and the document is
replaced atomically so readers never see a partial write.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List

from meet_recorder.config import get_logger
from meet_recorder.core.exceptions import RecorderException, SessionNotFoundError
from meet_recorder.domain.models import check_transition, utc_now

logger = get_logger("session_store")

METADATA_FILE = "metadata.json"
LOCK_FILE = ".metadata.lock"

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_suppress_oserror = contextlib.suppress(OSError)


class SessionStore:
    """
    Persists session metadata documents under ``base_dir/<session_id>/``.

    ``base_dir`` is created with the first session (or by ``ensure_base_dir``).
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def ensure_base_dir(self) -> Path:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        return self.base_dir

    def session_dir(self, session_id: str) -> Path:
        """Directory owning every artifact of ``session_id``."""
        if not session_id or not _SESSION_ID_RE.match(session_id):
            raise SessionNotFoundError(f"Invalid recording id: {session_id!r}")
        return self.base_dir / session_id

    def exists(self, session_id: str) -> bool:
        try:
            return (self.session_dir(session_id) / METADATA_FILE).exists()
        except SessionNotFoundError:
            return False

    def list_sessions(self) -> List[str]:
        """Ids of every session directory holding a metadata document."""
        if not self.base_dir.exists():
            return []
        return sorted(
            entry.name for entry in self.base_dir.iterdir()
            if entry.is_dir() and (entry / METADATA_FILE).exists()
        )

    def create(self, session_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create the session directory and write the initial document.

        Raises:
            RecorderException: If the session already exists.
        """
        directory = self.session_dir(session_id)
        try:
            directory.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            raise RecorderException(f"Recording {session_id} already exists")

        with self._locked(directory):
            self._write(directory, document)

        logger.info(f"Created session {session_id} at {directory}")
        return dict(document)

    def read(self, session_id: str) -> Dict[str, Any]:
        """
        Read the current document.

        Raises:
            SessionNotFoundError: If the session is unknown.
        """
        path = self.session_dir(session_id) / METADATA_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise SessionNotFoundError(f"Recording not found: {session_id}")

    def merge(self, session_id: str, update: Dict[str, Any]) -> Dict[str, Any]:
        """
        Shallow-merge ``update`` into the stored document.

        A ``status`` field must respect the session transition table;
        otherwise nothing is written.

        Raises:
            SessionNotFoundError: If the session is unknown.
            InvalidTransitionError: If the status update is out of order.
        """
        directory = self.session_dir(session_id)
        if not (directory / METADATA_FILE).exists():
            raise SessionNotFoundError(f"Recording not found: {session_id}")

        with self._locked(directory):
            document = self.read(session_id)

            if "status" in update:
                target = check_transition(document.get("status"), update["status"])
                update = {**update, "status": target.value}

            document.update(update)
            document["updated_at"] = utc_now()
            self._write(directory, document)

        if "status" in update:
            logger.info(f"Session {session_id} -> {update['status']}")
        return document

    @contextlib.contextmanager
    def _locked(self, directory: Path) -> Iterator[None]:
        """Hold an exclusive lock on the session's lock file."""
        fd = os.open(str(directory / LOCK_FILE), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            with _suppress_oserror:
                fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _write(self, directory: Path, document: Dict[str, Any]) -> None:
        # Atomic write: write to temp file, fsync, then rename
        fd, tmp_path = tempfile.mkstemp(dir=str(directory), prefix=".metadata_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, str(directory / METADATA_FILE))
        except BaseException:
            with _suppress_oserror:
                os.unlink(tmp_path)
            raise
