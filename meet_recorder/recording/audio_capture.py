"""
FFmpeg-based Audio Capture for Meet Recorder

Captures the system audio output (what the browser plays) from a
PulseAudio source and encodes it to the session's master file.

The process is started with ``-progress pipe:1``; the first progress
block ffmpeg writes is taken as proof that audio is being encoded.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, IO

from meet_recorder.config import AudioFormat, RecordingSettings, get_logger
from meet_recorder.core.exceptions import CaptureProcessError

logger = get_logger("audio_capture")


CAPTURE_CODECS = {
    AudioFormat.MP3: ["-c:a", "libmp3lame"],
    AudioFormat.WAV: ["-c:a", "pcm_s16le"],
    AudioFormat.FLAC: ["-c:a", "flac"],
    AudioFormat.OPUS: ["-c:a", "libopus", "-application", "voip", "-vbr", "on"],
}

# Codecs that take a -b:a bitrate
BITRATE_FORMATS = (AudioFormat.MP3, AudioFormat.OPUS)


class AudioCapture:
    """
    Capture system audio into a single master file with one ffmpeg process.

    Usage pattern:
        capture = AudioCapture(output_path, AudioFormat.MP3, "320k", 14400)
        await capture.start()
        ...
        result = await capture.stop()
    """

    def __init__(
        self,
        output_path: Path,
        audio_format: AudioFormat = AudioFormat.MP3,
        bitrate: str = "320k",
        max_duration: int = 14400,
        settings: Optional[RecordingSettings] = None,
        log_path: Optional[Path] = None,
    ):
        """
        Initialize the capture.

        Args:
            output_path: Master file to write
            audio_format: Encoding of the master file
            bitrate: Encoder bitrate for lossy formats
            max_duration: Hard ffmpeg-side duration limit in seconds
            settings: Recording settings (encoder binary, source, timings)
            log_path: File receiving ffmpeg's stderr
        """
        self._settings = settings or RecordingSettings()
        self.output_path = Path(output_path)
        self.audio_format = AudioFormat(audio_format)
        self.bitrate = bitrate
        self.max_duration = max_duration
        self.log_path = Path(log_path) if log_path else self.output_path.with_name("ffmpeg.log")

        self.process: Optional[asyncio.subprocess.Process] = None
        self.state = "idle"  # idle, starting, recording, stopping, stopped, error
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None

        self._log_file: Optional[IO[bytes]] = None
        self._progress_task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process else None

    def is_recording(self) -> bool:
        """Check if the encoder is running and producing output."""
        return self.state == "recording" and self.returncode is None

    def build_args(self) -> list:
        """Build FFmpeg command arguments."""
        args = [
            # Overwrite output file if exists
            "-y",
            "-nostats",
            "-progress", "pipe:1",

            # Input: PulseAudio
            "-f", "pulse",
            "-i", self._settings.pulse_source,

            # Audio settings
            "-ac", str(self._settings.channels),
            "-ar", str(self._settings.sample_rate),

            # Safety duration limit
            "-t", str(self.max_duration),
        ]

        args.extend(CAPTURE_CODECS[self.audio_format])
        if self.audio_format in BITRATE_FORMATS:
            args.extend(["-b:a", self.bitrate])

        args.append(str(self.output_path))
        return args

    async def start(self) -> None:
        """
        Spawn the encoder and wait for its first progress output.

        Raises:
            CaptureProcessError: If ffmpeg cannot be spawned, exits early,
                or produces no output within the start timeout.
        """
        if self.state != "idle":
            raise CaptureProcessError(f"Cannot start capture: current state is '{self.state}'")

        self.state = "starting"
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        args = self.build_args()
        logger.info(f"FFmpeg command: {self._settings.ffmpeg_binary} {' '.join(args)}")

        self._log_file = open(self.log_path, "ab")
        self.start_time = datetime.now()

        try:
            self.process = await asyncio.create_subprocess_exec(
                self._settings.ffmpeg_binary, *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=self._log_file,
            )
        except (FileNotFoundError, PermissionError) as e:
            self._fail()
            raise CaptureProcessError(f"Could not start audio encoder '{self._settings.ffmpeg_binary}': {e}")

        first_output = asyncio.get_running_loop().create_future()
        self._progress_task = asyncio.create_task(self._read_progress(first_output))

        try:
            await asyncio.wait_for(
                asyncio.shield(first_output),
                timeout=self._settings.capture_start_timeout_seconds
            )
        except asyncio.TimeoutError:
            await self.kill()
            self._fail()
            raise CaptureProcessError(
                f"Audio encoder produced no output within {self._settings.capture_start_timeout_seconds:g}s"
            )

        if not first_output.result():
            await self.process.wait()
            await self._wait_exit()
            code = self.returncode
            self._fail()
            raise CaptureProcessError(f"Audio encoder exited before recording started (code {code}); see {self.log_path.name}")

        self.state = "recording"
        logger.info(f"✓ Audio capture started (pid {self.pid}) -> {self.output_path.name}")

    async def stop(self) -> Dict[str, Any]:
        """
        Stop the encoder gracefully, killing it after the grace period.

        Returns:
            Dictionary with capture results
        """
        if self.process is None:
            self.state = "stopped"
            return self._build_result()

        self.state = "stopping"
        logger.info("Stopping audio capture...")

        if self.process.returncode is None:
            try:
                # 'q' makes ffmpeg finalize the container and exit
                if self.process.stdin and not self.process.stdin.is_closing():
                    self.process.stdin.write(b"q")
                    await self.process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.debug(f"Encoder stdin already closed: {e}")

            try:
                await asyncio.wait_for(self.process.wait(), timeout=self._settings.stop_grace_seconds)
            except asyncio.TimeoutError:
                logger.warning("FFmpeg didn't exit gracefully, killing...")
                await self.kill()

        await self._wait_exit()
        self.end_time = datetime.now()
        self.state = "stopped"
        self._close_log()

        result = self._build_result()
        logger.info(
            f"✓ Audio capture stopped. Duration: {result['duration']:.1f}s, "
            f"Size: {result['file_size'] / 1024:.1f}KB"
        )
        return result

    async def kill(self) -> None:
        """Force-terminate the encoder without finalizing the file."""
        if self.process and self.process.returncode is None:
            logger.warning(f"Killing audio encoder (pid {self.pid})")
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            await self.process.wait()
        await self._wait_exit()
        self._close_log()

    async def _read_progress(self, first_output: asyncio.Future) -> None:
        """Consume ffmpeg's progress stream; resolve ``first_output`` on the first block."""
        stream = self.process.stdout
        try:
            while True:
                line = await stream.readline()
                if not line:
                    break
                if not first_output.done() and line.startswith(b"progress="):
                    first_output.set_result(True)
        finally:
            if not first_output.done():
                first_output.set_result(False)

    async def _wait_exit(self) -> None:
        if self._progress_task is not None:
            try:
                await asyncio.wait_for(self._progress_task, timeout=5)
            except asyncio.TimeoutError:
                self._progress_task.cancel()
            self._progress_task = None

    def _fail(self) -> None:
        self.end_time = datetime.now()
        self.state = "error"
        self._close_log()

    def _close_log(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    def _build_result(self) -> Dict[str, Any]:
        """Build result dictionary."""
        file_size = self.output_path.stat().st_size if self.output_path.exists() else 0

        duration = 0.0
        if self.start_time and self.end_time:
            duration = (self.end_time - self.start_time).total_seconds()

        return {
            "audio_path": str(self.output_path),
            "duration": duration,
            "file_size": file_size,
            "returncode": self.returncode,
            "success": file_size > 0,
        }
