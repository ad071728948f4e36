"""
Configuration settings for the Meet Recorder.
Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from typing import Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from enum import Enum


class AudioFormat(str, Enum):
    """Audio formats the encoder can produce."""
    MP3 = "mp3"
    WAV = "wav"
    FLAC = "flac"
    OPUS = "opus"


class ServerSettings(BaseSettings):
    """HTTP server configuration."""
    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")


class RecordingSettings(BaseSettings):
    """Recording session configuration."""
    model_config = SettingsConfigDict(env_prefix="RECORDING_")

    recordings_dir: str = Field(default="/tmp/recordings", description="Session directories root")
    allowed_meeting_hosts: List[str] = Field(
        default=["meet.google.com"],
        description="Hosts accepted as meeting URLs (subdomains included)"
    )

    # Defaults for request options
    default_audio_format: AudioFormat = Field(default=AudioFormat.MP3, description="Master capture format")
    default_bitrate: str = Field(default="320k", description="Encoder bitrate")
    default_max_duration: int = Field(default=14400, description="Max recording length (seconds)")
    default_output_formats: List[AudioFormat] = Field(
        default=[AudioFormat.MP3, AudioFormat.WAV, AudioFormat.FLAC],
        description="Formats produced after the recording stops"
    )

    # Start handshake
    wait_for_start: bool = Field(default=True, description="Hold the start request until recording begins")
    init_wait_seconds: float = Field(default=360, description="Max wait for the recording milestone")
    start_poll_interval_seconds: float = Field(default=1.0, description="Status poll interval while starting")

    # Orchestration timings
    monitor_interval_seconds: float = Field(default=30, description="Meeting liveness check interval")
    meeting_end_recheck_seconds: float = Field(default=5, description="Delay before confirming meeting end")
    capture_start_timeout_seconds: float = Field(default=15, description="Max wait for first encoder output")
    stop_grace_seconds: float = Field(default=10, description="Grace period for encoder shutdown and for a worker stopped at the start timeout")
    worker_shutdown_timeout_seconds: float = Field(
        default=300, description="Max wait for workers to finish processing on server shutdown"
    )

    # Encoder
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    pulse_source: str = Field(default="default", description="PulseAudio source to capture")
    sample_rate: int = Field(default=44100, description="Capture sample rate")
    channels: int = Field(default=2, description="Capture channel count")


class BrowserSettings(BaseSettings):
    """Headless browser configuration."""
    model_config = SettingsConfigDict(env_prefix="BROWSER_")

    headless: bool = Field(default=True, description="Run Chromium headless")
    executable_path: Optional[str] = Field(default=None, description="Chrome binary (bundled Chromium if unset)")
    bot_name: str = Field(default="Meeting Recorder", description="Guest display name")
    navigation_timeout_ms: int = Field(default=60000, description="Page navigation timeout")
    settle_seconds: float = Field(default=3, description="Pause after page load")
    admission_timeout_seconds: float = Field(default=90, description="Max wait in the meeting lobby")
    debug_screenshots: bool = Field(default=True, description="Save screenshots and HTML per step")
    user_agent: str = Field(
        default="Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        description="Browser user agent"
    )


class AuthSettings(BaseSettings):
    """Google sign-in automation configuration."""
    model_config = SettingsConfigDict(env_prefix="AUTH_")

    signin_url: str = Field(
        default="https://accounts.google.com/signin/v2/identifier?service=mail&passive=true&rm=false",
        description="Sign-in entry point"
    )
    credential_step_timeout_seconds: float = Field(default=10, description="Max wait for email/password fields")
    auth_timeout_seconds: float = Field(default=45, description="Max wait for sign-in to complete")
    verification_timeout_seconds: float = Field(default=240, description="Max wait for a verification challenge")
    poll_interval_seconds: float = Field(default=2, description="Sign-in state poll interval")


class RetentionSettings(BaseSettings):
    """Retention sweep configuration."""
    model_config = SettingsConfigDict(env_prefix="RETENTION_")

    enabled: bool = Field(default=True, description="Run the daily sweep")
    days: int = Field(default=7, description="Session directory retention window")
    hour: int = Field(default=2, description="Sweep hour (server local time)")
    minute: int = Field(default=0, description="Sweep minute")


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        extra="ignore"
    )

    # Nested settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    recording: RecordingSettings = Field(default_factory=RecordingSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)

    # Application settings
    project_name: str = Field(default="Meet Recorder", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default="logs", description="Log file directory")

    @property
    def recordings_dir(self) -> str:
        """Get recordings directory path."""
        return self.recording.recordings_dir

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


# Global settings instance
settings = Settings()
