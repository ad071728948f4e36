"""
Domain models for recording sessions.

A session moves forward through a fixed ordering of statuses:

    initializing -> launching -> joining -> authenticating -> recording
        -> processing -> completed

Steps may be skipped (anonymous sessions never authenticate), any
non-terminal status may move to ``failed``, and ``completed``/``failed``
are final.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from meet_recorder.config import AudioFormat, RecordingSettings
from meet_recorder.core.exceptions import InvalidTransitionError, ValidationError


class SessionStatus(str, Enum):
    """Lifecycle states of a recording session."""
    INITIALIZING = "initializing"
    LAUNCHING = "launching"
    JOINING = "joining"
    AUTHENTICATING = "authenticating"
    RECORDING = "recording"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


# Forward ordering of the non-failure path
STATUS_RANK: Dict[SessionStatus, int] = {
    SessionStatus.INITIALIZING: 0,
    SessionStatus.LAUNCHING: 1,
    SessionStatus.JOINING: 2,
    SessionStatus.AUTHENTICATING: 3,
    SessionStatus.RECORDING: 4,
    SessionStatus.PROCESSING: 5,
    SessionStatus.COMPLETED: 6,
}


def _build_transition_table() -> Dict[SessionStatus, frozenset]:
    table = {}
    for current in SessionStatus:
        if current.is_terminal:
            table[current] = frozenset()
            continue
        allowed = {
            target for target, rank in STATUS_RANK.items()
            if rank > STATUS_RANK[current]
        }
        allowed.add(SessionStatus.FAILED)
        table[current] = frozenset(allowed)
    return table


ALLOWED_TRANSITIONS: Dict[SessionStatus, frozenset] = _build_transition_table()


def parse_status(value: Any) -> SessionStatus:
    """Convert a stored status string to a ``SessionStatus``."""
    try:
        return SessionStatus(value)
    except ValueError:
        raise InvalidTransitionError(f"Unknown session status: {value!r}")


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return True if a session in ``current`` may be updated to ``target``."""
    if current == target:
        return not current.is_terminal
    return target in ALLOWED_TRANSITIONS[current]


def check_transition(current: Any, target: Any) -> SessionStatus:
    """
    Validate a status update.

    Returns:
        The parsed target status.

    Raises:
        InvalidTransitionError: If the update is unknown or out of order.
    """
    current_status = parse_status(current)
    target_status = parse_status(target)
    if not can_transition(current_status, target_status):
        raise InvalidTransitionError(
            f"Cannot move session from '{current_status.value}' to '{target_status.value}'",
            details={"from": current_status.value, "to": target_status.value},
        )
    return target_status


class AuthMethod(str, Enum):
    """How the browser identified itself to the meeting."""
    ANONYMOUS = "anonymous"
    CREDENTIALS = "credentials"
    ALREADY_AUTHENTICATED = "already_authenticated"


@dataclass
class GoogleCredentials:
    """Transient credential pair. Never persisted."""
    email: str
    password: str

    def __repr__(self) -> str:
        return f"GoogleCredentials(email={self.email!r}, password='***')"


@dataclass
class AuthContext:
    """Authentication record stored in the session document."""
    method: AuthMethod = AuthMethod.ANONYMOUS
    account: Optional[str] = None
    has_password: bool = False

    @classmethod
    def for_credentials(cls, credentials: Optional[GoogleCredentials]) -> "AuthContext":
        if credentials is None:
            return cls()
        return cls(
            method=AuthMethod.CREDENTIALS,
            account=credentials.email,
            has_password=bool(credentials.password),
        )

    def to_dict(self) -> dict:
        return {
            "method": self.method.value,
            "account": self.account,
            "has_password": self.has_password,
        }


_BITRATE_RE = re.compile(r"^\d{2,3}k$")
MAX_DURATION_LIMIT = 24 * 60 * 60


@dataclass
class CaptureOptions:
    """Encoder options for one session."""
    audio_format: AudioFormat = AudioFormat.MP3
    bitrate: str = "320k"
    max_duration: int = 14400
    output_formats: List[AudioFormat] = field(
        default_factory=lambda: [AudioFormat.MP3, AudioFormat.WAV, AudioFormat.FLAC]
    )

    @classmethod
    def from_request(
        cls,
        data: Optional[Dict[str, Any]],
        defaults: Optional[RecordingSettings] = None
    ) -> "CaptureOptions":
        """
        Build options from a request payload, filling gaps from settings.

        Raises:
            ValidationError: If any option is invalid.
        """
        data = {k: v for k, v in (data or {}).items() if v is not None}
        defaults = defaults or RecordingSettings()

        audio_format = _parse_format(data.get("audio_format", defaults.default_audio_format))

        bitrate = str(data.get("bitrate", defaults.default_bitrate))
        if not _BITRATE_RE.match(bitrate):
            raise ValidationError(f"Invalid bitrate '{bitrate}' (expected e.g. '320k')")

        raw_duration = data.get("max_duration", defaults.default_max_duration)
        try:
            max_duration = int(raw_duration)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid max_duration '{raw_duration}'")
        if not 1 <= max_duration <= MAX_DURATION_LIMIT:
            raise ValidationError(f"max_duration must be between 1 and {MAX_DURATION_LIMIT} seconds")

        raw_outputs = data.get("output_formats", defaults.default_output_formats)
        if not raw_outputs:
            raise ValidationError("output_formats must not be empty")
        output_formats = []
        for item in raw_outputs:
            fmt = _parse_format(item)
            if fmt not in output_formats:
                output_formats.append(fmt)

        return cls(
            audio_format=audio_format,
            bitrate=bitrate,
            max_duration=max_duration,
            output_formats=output_formats,
        )

    def to_dict(self) -> dict:
        return {
            "audio_format": self.audio_format.value,
            "bitrate": self.bitrate,
            "max_duration": self.max_duration,
            "output_formats": [fmt.value for fmt in self.output_formats],
        }


def _parse_format(value: Any) -> AudioFormat:
    try:
        return AudioFormat(str(getattr(value, "value", value)).lower())
    except ValueError:
        supported = ", ".join(fmt.value for fmt in AudioFormat)
        raise ValidationError(f"Unsupported audio format '{value}' (supported: {supported})")


def validate_meeting_url(url: Optional[str], allowed_hosts: List[str]) -> str:
    """
    Check that ``url`` points at a meeting on one of ``allowed_hosts``.

    Returns:
        The stripped URL.

    Raises:
        ValidationError: If the URL is missing or not a meeting URL.
    """
    if not url or not url.strip():
        raise ValidationError("meet_url is required")

    url = url.strip()
    hosts = ", ".join(allowed_hosts)
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError:
        raise ValidationError(f"Valid meeting URL required (malformed URL, must be on {hosts})")

    if parsed.scheme not in ("http", "https") or not host:
        raise ValidationError(f"Valid meeting URL required (must be an http(s) URL on {hosts})")

    if not any(host == h.lower() or host.endswith("." + h.lower()) for h in allowed_hosts):
        raise ValidationError(f"Valid meeting URL required (must contain {hosts})")

    if not parsed.path.strip("/"):
        raise ValidationError("Meeting URL has no meeting code")

    return url


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_session_document(
    recording_id: str,
    meet_url: str,
    options: CaptureOptions,
    auth: AuthContext,
    recording_dir: str,
) -> dict:
    """Initial metadata document for a freshly created session."""
    now = utc_now()
    return {
        "recording_id": recording_id,
        "meet_url": meet_url,
        "status": SessionStatus.INITIALIZING.value,
        "created_at": now,
        "updated_at": now,
        "options": options.to_dict(),
        "auth": auth.to_dict(),
        "recording_dir": recording_dir,
    }
