"""
Recording Manager - start, status, stop and download use cases.

Sits between the HTTP endpoints and the session store / worker registry.
Everything is validated before a session directory is created.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from meet_recorder.config import AudioFormat, Settings, get_logger
from meet_recorder.core.exceptions import (
    InvalidTransitionError,
    OutputNotFoundError,
    RecordingStartError,
    SessionNotFoundError,
    ValidationError,
)
from meet_recorder.domain.models import (
    AuthContext,
    CaptureOptions,
    GoogleCredentials,
    SessionStatus,
    STATUS_RANK,
    new_session_document,
    utc_now,
    validate_meeting_url,
)
from meet_recorder.storage import SessionStore
from meet_recorder.utils import generate_recording_id
from .session_registry import SessionRegistry

logger = get_logger("recording_manager")


def parse_credentials(google_auth: Optional[Dict[str, Any]]) -> Optional[GoogleCredentials]:
    """
    Build a credential pair from the request's ``google_auth`` object.

    Raises:
        ValidationError: If only one of email and password is given.
    """
    if not google_auth:
        return None
    email = (google_auth.get("email") or "").strip()
    password = google_auth.get("password") or ""
    if not email and not password:
        return None
    if not email or not password:
        raise ValidationError("google_auth requires both email and password")
    return GoogleCredentials(email=email, password=password)


class RecordingManager:
    """Use cases behind the recording endpoints."""

    def __init__(self, store: SessionStore, registry: SessionRegistry, settings: Settings):
        self.store = store
        self.registry = registry
        self._settings = settings

    async def start_recording(
        self,
        meet_url: Optional[str],
        options: Optional[Dict[str, Any]] = None,
        google_auth: Optional[Dict[str, Any]] = None,
        wait_for_start: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Create a session and spawn its worker.

        When waiting (the default), returns once the session is recording.

        Raises:
            ValidationError: If the URL, options or credentials are invalid.
            RecordingStartError: If the session fails, the worker exits, or
                recording has not started within the initialization window.
        """
        recording = self._settings.recording
        meet_url = validate_meeting_url(meet_url, recording.allowed_meeting_hosts)
        capture_options = CaptureOptions.from_request(options, recording)
        credentials = parse_credentials(google_auth)

        recording_id = generate_recording_id()
        session_dir = self.store.session_dir(recording_id)
        document = new_session_document(
            recording_id,
            meet_url,
            capture_options,
            AuthContext.for_credentials(credentials),
            str(session_dir),
        )
        self.store.create(recording_id, document)
        logger.info(f"🎙️ New recording {recording_id} for {meet_url}")

        try:
            process = await self.registry.spawn(
                recording_id, meet_url, capture_options.to_dict(), session_dir, credentials
            )
        except OSError as e:
            self._mark_failed(recording_id, f"Could not start recording worker: {e}")
            raise RecordingStartError(f"Could not start recording worker: {e}", details={"recording_id": recording_id})

        self.store.merge(recording_id, {"worker_pid": process.pid})

        wait = recording.wait_for_start if wait_for_start is None else wait_for_start
        if not wait:
            return self._start_response(recording_id, SessionStatus.INITIALIZING.value, "Recording initializing")

        document = await self._wait_for_recording(recording_id)
        return self._start_response(recording_id, document["status"], "Recording started")

    async def _wait_for_recording(self, recording_id: str) -> Dict[str, Any]:
        recording = self._settings.recording
        loop = asyncio.get_running_loop()
        deadline = loop.time() + recording.init_wait_seconds

        while True:
            document = self._check_started(recording_id)
            if document is not None:
                return document

            if not self.registry.is_active(recording_id):
                # The worker may have written its final status just before exiting
                document = self._check_started(recording_id)
                if document is not None:
                    return document
                message = "Recording worker exited before recording started"
                self._mark_failed(recording_id, message)
                raise RecordingStartError(message, details={"recording_id": recording_id})

            if loop.time() >= deadline:
                message = f"Recording did not start within {recording.init_wait_seconds:g}s"
                self._mark_failed(recording_id, message)
                await self.registry.terminate(recording_id, recording.stop_grace_seconds)
                raise RecordingStartError(message, details={"recording_id": recording_id})

            await asyncio.sleep(recording.start_poll_interval_seconds)

    def _check_started(self, recording_id: str) -> Optional[Dict[str, Any]]:
        """Return the document once recording has begun; raise if the session failed."""
        document = self.store.read(recording_id)
        status = SessionStatus(document["status"])
        if status == SessionStatus.FAILED:
            raise RecordingStartError(
                document.get("error") or "Recording failed to start",
                details={"recording_id": recording_id},
            )
        if STATUS_RANK[status] >= STATUS_RANK[SessionStatus.RECORDING]:
            return document
        return None

    def _mark_failed(self, recording_id: str, message: str) -> None:
        try:
            self.store.merge(recording_id, {
                "status": SessionStatus.FAILED.value,
                "error": message,
                "error_type": RecordingStartError.__name__,
                "failed_at": utc_now(),
            })
        except InvalidTransitionError:
            logger.warning(f"Recording {recording_id} already terminal; not marking failed")

    def _start_response(self, recording_id: str, status: str, message: str) -> Dict[str, Any]:
        return {
            "success": True,
            "recording_id": recording_id,
            "status": status,
            "message": message,
            "status_url": f"/api/status/{recording_id}",
            "download_url": f"/api/download/{recording_id}",
        }

    def get_status(self, recording_id: str) -> Dict[str, Any]:
        """
        Full metadata document plus liveness.

        Raises:
            SessionNotFoundError: If the session is unknown.
        """
        document = self.store.read(recording_id)
        return {
            **document,
            "is_active": self.registry.is_active(recording_id),
            "timestamp": utc_now(),
        }

    def stop_recording(self, recording_id: str) -> Dict[str, Any]:
        """
        Signal the session's worker to stop.

        Raises:
            SessionNotFoundError: If no live worker is tracked for the id.
        """
        self.store.session_dir(recording_id)  # rejects malformed ids
        if not self.registry.stop(recording_id):
            raise SessionNotFoundError(f"No active recording found: {recording_id}")

        logger.info(f"⏹️ Stop requested for {recording_id}")
        return {
            "success": True,
            "recording_id": recording_id,
            "message": "Recording stopping; output files will be available once processing completes",
            "status_url": f"/api/status/{recording_id}",
        }

    def resolve_download(
        self,
        recording_id: str,
        audio_format: Optional[str] = None,
    ) -> Tuple[Optional[Path], Dict[str, Any]]:
        """
        Locate an output file.

        Returns:
            ``(path, document)``; ``path`` is None while the session is not
            completed.

        Raises:
            SessionNotFoundError: If the session is unknown.
            OutputNotFoundError: If the format was not produced or the file
                is missing.
        """
        document = self.store.read(recording_id)
        if document.get("status") != SessionStatus.COMPLETED.value:
            return None, document

        fmt = (audio_format or document.get("options", {}).get("audio_format") or AudioFormat.MP3.value).lower()
        file_name = (document.get("files") or {}).get(fmt)
        if not file_name:
            raise OutputNotFoundError(f"Format '{fmt}' not available for {recording_id}")

        path = self.store.session_dir(recording_id) / file_name
        if not path.is_file():
            raise OutputNotFoundError(f"Recording file not found: {file_name}")
        return path, document
