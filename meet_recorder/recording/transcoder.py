"""
Transcode a captured master file into the requested output formats.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Iterable, Optional

from meet_recorder.config import AudioFormat, RecordingSettings, get_logger
from meet_recorder.core.exceptions import TranscodeError

logger = get_logger("transcoder")

OUTPUT_BASENAME = "processed_recording"

OUTPUT_CODECS = {
    AudioFormat.MP3: ["-c:a", "libmp3lame"],
    AudioFormat.WAV: ["-c:a", "pcm_s16le"],
    AudioFormat.FLAC: ["-c:a", "flac"],
    AudioFormat.OPUS: ["-c:a", "libopus"],
}


class Transcoder:
    """Runs one ffmpeg conversion per output format, in order."""

    def __init__(self, settings: Optional[RecordingSettings] = None):
        self._settings = settings or RecordingSettings()

    def build_args(self, source: Path, target: Path, fmt: AudioFormat, bitrate: str) -> list:
        args = ["-y", "-i", str(source), "-vn"]
        args.extend(OUTPUT_CODECS[fmt])
        if fmt in (AudioFormat.MP3, AudioFormat.OPUS):
            args.extend(["-b:a", bitrate])
        args.append(str(target))
        return args

    async def transcode(
        self,
        source: Path,
        output_dir: Path,
        formats: Iterable[AudioFormat],
        bitrate: str = "320k",
    ) -> Dict[str, str]:
        """
        Convert ``source`` into every format in ``formats``.

        Returns:
            Mapping of format name to output file name (relative to ``output_dir``).

        Raises:
            TranscodeError: If the source is missing or any conversion fails.
                Outputs produced before the failure are left in place.
        """
        source = Path(source)
        output_dir = Path(output_dir)
        if not source.exists() or source.stat().st_size == 0:
            raise TranscodeError(f"No recording file found at {source.name}")

        files: Dict[str, str] = {}
        for fmt in formats:
            fmt = AudioFormat(fmt)
            file_name = f"{OUTPUT_BASENAME}.{fmt.value}"
            target = output_dir / file_name

            args = self.build_args(source, target, fmt, bitrate)
            logger.info(f"Transcoding {source.name} -> {file_name}")

            try:
                proc = await asyncio.create_subprocess_exec(
                    self._settings.ffmpeg_binary, *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (FileNotFoundError, PermissionError) as e:
                raise TranscodeError(f"Could not run '{self._settings.ffmpeg_binary}': {e}")

            _, stderr = await proc.communicate()
            if proc.returncode != 0:
                tail = stderr.decode(errors="replace").strip().splitlines()[-3:]
                logger.error(f"ffmpeg failed for {fmt.value}: {' | '.join(tail)}")
                raise TranscodeError(
                    f"FFmpeg failed for {fmt.value} (code {proc.returncode})",
                    details={"format": fmt.value, "stderr": tail},
                )

            files[fmt.value] = file_name
            logger.info(f"✅ {file_name} written")

        return files
