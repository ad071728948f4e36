"""
Worker process entry point - runs exactly one recording session.

    python -m meet_recorder.worker <recording_id> <meet_url> <options_json>

The Google credential pair, when present, is read from the environment
(``MEET_RECORDER_GOOGLE_EMAIL`` / ``MEET_RECORDER_GOOGLE_PASSWORD``) and
removed from it before the browser is launched. SIGTERM and SIGINT ask the
running session to stop and finish normally.

Exit codes: 0 completed, 1 failed, 2 bad invocation.
"""

import asyncio
import json
import os
import signal
import sys
from typing import Any, Dict, List, MutableMapping, Optional, Tuple

from meet_recorder.config import Settings, get_logger, settings as default_settings, setup_logging
from meet_recorder.core.exceptions import ValidationError
from meet_recorder.domain.models import CaptureOptions, GoogleCredentials
from meet_recorder.meeting_handler.orchestrator import RecordingOrchestrator
from meet_recorder.storage import SessionStore

logger = get_logger("worker")

EMAIL_ENV = "MEET_RECORDER_GOOGLE_EMAIL"
PASSWORD_ENV = "MEET_RECORDER_GOOGLE_PASSWORD"

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def parse_args(argv: List[str]) -> Tuple[str, str, Dict[str, Any]]:
    """
    Split the worker command line.

    Raises:
        ValidationError: On a wrong argument count or malformed options JSON.
    """
    if len(argv) != 3:
        raise ValidationError("usage: python -m meet_recorder.worker <recording_id> <meet_url> <options_json>")

    recording_id, meet_url, raw_options = argv
    try:
        options = json.loads(raw_options)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid options JSON: {e}")
    if not isinstance(options, dict):
        raise ValidationError("Options JSON must be an object")
    return recording_id, meet_url, options


def credentials_from_env(environ: Optional[MutableMapping[str, str]] = None) -> Optional[GoogleCredentials]:
    """Pop the credential pair from ``environ``; None unless both are set."""
    environ = os.environ if environ is None else environ
    email = environ.pop(EMAIL_ENV, None)
    password = environ.pop(PASSWORD_ENV, None)
    if not email or not password:
        return None
    return GoogleCredentials(email=email, password=password)


async def run_session(
    recording_id: str,
    meet_url: str,
    options: CaptureOptions,
    credentials: Optional[GoogleCredentials] = None,
    settings: Optional[Settings] = None,
    store: Optional[SessionStore] = None,
) -> bool:
    """Run one session with stop signals wired to the orchestrator."""
    settings = settings or default_settings
    store = store or SessionStore(settings.recordings_dir)
    orchestrator = RecordingOrchestrator(
        recording_id,
        meet_url,
        options,
        store,
        credentials=credentials,
        settings=settings,
    )

    loop = asyncio.get_running_loop()
    for sig in STOP_SIGNALS:
        loop.add_signal_handler(sig, orchestrator.request_stop, "stop_requested")
    try:
        return await orchestrator.run()
    finally:
        for sig in STOP_SIGNALS:
            loop.remove_signal_handler(sig)


def main(argv: Optional[List[str]] = None) -> int:
    # stdout is redirected into the session's process.log
    setup_logging(enable_file_logging=False, colored=False)

    try:
        recording_id, meet_url, raw_options = parse_args(sys.argv[1:] if argv is None else argv)
        options = CaptureOptions.from_request(raw_options, default_settings.recording)
    except ValidationError as e:
        logger.error(f"❌ {e.message}")
        return 2

    credentials = credentials_from_env()
    logger.info(
        f"Worker {os.getpid()} starting {recording_id} "
        f"({'with account ' + credentials.email if credentials else 'anonymous'})"
    )

    ok = asyncio.run(run_session(recording_id, meet_url, options, credentials))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
