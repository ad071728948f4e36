"""
Recording Module

Captures system audio with ffmpeg + PulseAudio and converts the
captured master file into the requested output formats.
"""

from .audio_capture import AudioCapture
from .transcoder import Transcoder, OUTPUT_BASENAME

__all__ = ["AudioCapture", "Transcoder", "OUTPUT_BASENAME"]
