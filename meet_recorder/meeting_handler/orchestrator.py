"""
Recording Orchestrator - runs one recording session end to end.

Launch browser -> join (and sign in) -> capture audio -> monitor ->
stop -> transcode, persisting a status update to the session store at
every milestone. Any exception marks the session failed; the capture
process and the browser are released on every exit path.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Callable, Optional

from meet_recorder.config import Settings, get_logger, settings as default_settings
from meet_recorder.core.exceptions import (
    CaptureProcessError,
    InvalidTransitionError,
    RecorderException,
    RecordingStartError,
)
from meet_recorder.domain.models import (
    AuthContext,
    CaptureOptions,
    GoogleCredentials,
    SessionStatus,
    utc_now,
)
from meet_recorder.recording import AudioCapture, Transcoder
from meet_recorder.storage import SessionStore
from meet_recorder.utils import format_duration
from .meet_handler import MeetAutomation

logger = get_logger("orchestrator")

MASTER_BASENAME = "recording"


class RecordingOrchestrator:
    """
    Drives one session through its status sequence.

    Usage pattern:
        orchestrator = RecordingOrchestrator(session_id, meet_url, options, store)
        ok = await orchestrator.run()

    ``request_stop`` may be called at any time (typically from a signal
    handler); the running session then stops capture and finishes normally.
    """

    def __init__(
        self,
        session_id: str,
        meet_url: str,
        options: CaptureOptions,
        store: SessionStore,
        credentials: Optional[GoogleCredentials] = None,
        settings: Optional[Settings] = None,
        automation_factory: Optional[Callable[[Path], Any]] = None,
        capture_factory: Optional[Callable[[Path, CaptureOptions], Any]] = None,
        transcoder: Optional[Transcoder] = None,
    ):
        """
        Args:
            session_id: Id of an existing session in ``store``
            meet_url: Validated meeting URL
            options: Capture options for this session
            store: Session metadata store
            credentials: Optional Google account to sign in with
            settings: Application settings (global settings if omitted)
            automation_factory: Builds the browser automation for a session dir
            capture_factory: Builds the audio capture for a master file path
            transcoder: Post-processing transcoder
        """
        self._settings = settings or default_settings
        self.session_id = session_id
        self.meet_url = meet_url
        self.options = options
        self.store = store
        self.credentials = credentials
        self.session_dir = store.session_dir(session_id)

        self._automation_factory = automation_factory or self._default_automation
        self._capture_factory = capture_factory or self._default_capture
        self.transcoder = transcoder or Transcoder(self._settings.recording)

        self.automation = None
        self.capture = None
        self.stop_reason: Optional[str] = None
        self._stop_event = asyncio.Event()

    @property
    def master_path(self) -> Path:
        return self.session_dir / f"{MASTER_BASENAME}.{self.options.audio_format.value}"

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self, reason: str = "stop_requested") -> None:
        """Ask the session to stop recording and finish."""
        if self.stop_reason is None:
            self.stop_reason = reason
        logger.info(f"Stop requested for {self.session_id} ({reason})")
        self._stop_event.set()

    async def run(self) -> bool:
        """
        Run the session.

        Returns:
            True if the session reached ``completed``, False if it failed.
        """
        logger.info(f"🎬 Starting session {self.session_id} for {self.meet_url}")
        try:
            await self._run()
            logger.info(f"✅ Session {self.session_id} completed")
            return True
        except Exception as e:
            logger.error(f"❌ Session {self.session_id} failed: {type(e).__name__}: {e}")
            await self._mark_failed(e)
            return False
        finally:
            await self._release()

    async def _run(self) -> None:
        # --- Launch ---
        self._update(status=SessionStatus.LAUNCHING.value, worker_pid=os.getpid())
        self.automation = self._automation_factory(self.session_dir)
        await self.automation.launch()
        self._update(browser_launched=True)
        self._check_stop_before_capture()

        # --- Join (sign in first when credentials were given) ---
        self._update(status=SessionStatus.JOINING.value)
        await self.automation.navigate(self.meet_url)
        self._check_stop_before_capture()

        if self.credentials is not None:
            self._update(status=SessionStatus.AUTHENTICATING.value)
            method = await self.automation.authenticate(self.credentials, self.meet_url)
            auth = AuthContext.for_credentials(self.credentials)
            auth.method = method
            self._update(auth=auth.to_dict())
            self._check_stop_before_capture()

        strategy = await self.automation.join(self._settings.browser.bot_name)
        self._update(joined_at=utc_now(), join_strategy=strategy)
        self._check_stop_before_capture()

        # --- Capture ---
        self.capture = self._capture_factory(self.master_path, self.options)
        await self.capture.start()
        self._update(
            status=SessionStatus.RECORDING.value,
            recording_started_at=utc_now(),
            capture_pid=self.capture.pid,
            master_file=self.master_path.name,
        )
        logger.info(f"🔴 Recording {self.session_id}")

        reason = await self._monitor()
        await self._finish(reason)

    def _check_stop_before_capture(self) -> None:
        if self.stop_requested:
            raise RecordingStartError("Recording stopped before capture started")

    async def _monitor(self) -> str:
        """
        Wait until the session should stop.

        Returns:
            The stop reason.

        Raises:
            CaptureProcessError: If the encoder exits abnormally.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.options.max_duration
        interval = self._settings.recording.monitor_interval_seconds

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(f"⏱️ Max duration ({self.options.max_duration}s) reached")
                return "max_duration"

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=min(interval, remaining))
                return self.stop_reason or "stop_requested"
            except asyncio.TimeoutError:
                pass

            code = self.capture.returncode
            if code is not None:
                if code == 0:
                    # ffmpeg's own -t limit ends the capture cleanly
                    logger.info("Audio encoder finished on its own")
                    return "max_duration"
                raise CaptureProcessError(f"Audio encoder exited unexpectedly (code {code})")

            if not await self._meeting_alive():
                logger.info("👋 Meeting ended")
                return "meeting_ended"

    async def _meeting_alive(self) -> bool:
        """In-meeting check with one delayed re-check; check errors count as alive."""
        try:
            if await self.automation.is_in_meeting():
                return True
            logger.info("In-meeting indicators missing; re-checking...")
            await asyncio.sleep(self._settings.recording.meeting_end_recheck_seconds)
            return await self.automation.is_in_meeting()
        except Exception as e:
            logger.warning(f"Meeting check failed: {e}")
            return True

    async def _finish(self, reason: str) -> None:
        self.stop_reason = reason
        logger.info(f"⏹️ Stopping recording ({reason})")

        result = await self.capture.stop()
        logger.info(f"Captured {format_duration(result['duration'])} of audio")
        await self._close_automation()

        self._update(
            status=SessionStatus.PROCESSING.value,
            recording_ended_at=utc_now(),
            duration_seconds=round(result["duration"], 1),
            stop_reason=reason,
        )

        files = await self.transcoder.transcode(
            self.master_path,
            self.session_dir,
            self.options.output_formats,
            self.options.bitrate,
        )
        file_sizes = {fmt: (self.session_dir / name).stat().st_size for fmt, name in files.items()}

        self._update(
            status=SessionStatus.COMPLETED.value,
            files=files,
            file_sizes=file_sizes,
            completed_at=utc_now(),
        )

    async def _mark_failed(self, error: Exception) -> None:
        if self.automation is not None:
            try:
                await self.automation.save_debug_snapshot("error")
            except Exception as e:
                logger.debug(f"Error snapshot failed: {e}")

        update = {
            "status": SessionStatus.FAILED.value,
            "error": getattr(error, "message", None) or str(error) or type(error).__name__,
            "error_type": type(error).__name__,
            "failed_at": utc_now(),
        }
        if self.stop_reason:
            update["stop_reason"] = self.stop_reason

        try:
            self._update(**update)
        except InvalidTransitionError:
            # The API side already closed the session (start window elapsed)
            logger.warning(f"Session {self.session_id} already terminal; failure not recorded")
        except RecorderException as e:
            logger.error(f"Could not record failure for {self.session_id}: {e.message}")

    async def _release(self) -> None:
        if self.capture is not None and self.capture.returncode is None:
            try:
                await self.capture.kill()
            except Exception as e:
                logger.error(f"Failed to kill audio encoder: {e}")
        await self._close_automation()

    async def _close_automation(self) -> None:
        if self.automation is None:
            return
        automation, self.automation = self.automation, None
        try:
            await automation.close()
        except Exception as e:
            logger.warning(f"Browser close error: {e}")

    def _update(self, **fields: Any) -> None:
        self.store.merge(self.session_id, fields)

    def _default_automation(self, session_dir: Path) -> MeetAutomation:
        return MeetAutomation(
            session_dir,
            self._settings.browser,
            self._settings.auth,
            self._settings.recording.allowed_meeting_hosts,
        )

    def _default_capture(self, output_path: Path, options: CaptureOptions) -> AudioCapture:
        return AudioCapture(
            output_path,
            options.audio_format,
            options.bitrate,
            options.max_duration,
            self._settings.recording,
        )
