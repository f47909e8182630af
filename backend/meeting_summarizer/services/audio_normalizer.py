from __future__ import annotations

import logging
import math
import os
import subprocess
import tempfile
import wave
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import soxr

from meeting_summarizer.config import Settings
from meeting_summarizer.errors import AudioConversionError, AudioProcessingError, WavFormatError


logger = logging.getLogger("meeting_summarizer.audio")

TARGET_RATE = 16000
CANONICAL_SUFFIX = ".wav"
SCALING_FACTOR = math.sqrt(2)


def downmix(frames: np.ndarray) -> np.ndarray:
    """Collapse a (frames, channels) buffer to one energy-preserving channel.

    For two channels this is ``sqrt(2) * (c0 + c1) / 2``; wider layouts use the
    mean of every channel with the same scaling.
    """
    data = np.asarray(frames, dtype=np.float32)
    if data.ndim == 1:
        return data
    if data.shape[1] == 1:
        return data[:, 0]
    return (SCALING_FACTOR * data.mean(axis=1)).astype(np.float32)


def _decode_pcm(raw: bytes, sample_width: int) -> np.ndarray:
    if sample_width == 1:
        # 8-bit WAV is unsigned
        return (np.frombuffer(raw, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    if sample_width == 2:
        return np.frombuffer(raw, dtype="<i2").astype(np.float32) / 32768.0
    if sample_width == 3:
        b = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        ints = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
        ints = np.where(ints >= 1 << 23, ints - (1 << 24), ints)
        return ints.astype(np.float32) / 8388608.0
    if sample_width == 4:
        return (np.frombuffer(raw, dtype="<i4").astype(np.float64) / 2147483648.0).astype(np.float32)
    raise WavFormatError(f"Audio processing failed: unsupported sample width {sample_width}")


def read_wav(path: Path) -> Tuple[np.ndarray, int]:
    """Read a PCM WAV file into a float32 (frames, channels) array and its rate.

    Raises ``WavFormatError`` for encodings the ``wave`` module cannot read
    (IEEE float, compressed formats, non-RIFF data) and ``AudioProcessingError``
    for PCM data that is truncated or otherwise malformed.
    """
    try:
        with wave.open(str(path), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            rate = wf.getframerate()
            raw = wf.readframes(wf.getnframes())
    except wave.Error as exc:
        raise WavFormatError(f"Audio processing failed: {exc}") from exc
    except EOFError as exc:
        raise AudioProcessingError(f"Audio processing failed: {exc}") from exc

    try:
        samples = _decode_pcm(raw, sample_width)
        usable = len(samples) - (len(samples) % channels)
        return samples[:usable].reshape(-1, channels), rate
    except ValueError as exc:
        raise AudioProcessingError(f"Audio processing failed: {exc}") from exc


class AudioNormalizer:
    """Turns any uploaded audio file into mono 16 kHz float32 samples."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        s = settings or Settings()
        self.ffmpeg_binary = s.ffmpeg_binary
        self.target_rate = TARGET_RATE

    def load(self, path: Path) -> np.ndarray:
        path = Path(path)
        if path.suffix.lower() == CANONICAL_SUFFIX:
            try:
                return self._read_samples(path)
            except WavFormatError as exc:
                logger.info("%s is not plain PCM (%s), decoding with ffmpeg", path.name, exc.message)
        converted = self._convert(path)
        try:
            return self._read_samples(converted)
        finally:
            converted.unlink(missing_ok=True)

    def _convert(self, path: Path) -> Path:
        fd, out_name = tempfile.mkstemp(suffix=CANONICAL_SUFFIX, prefix=f"{path.stem}-", dir=str(path.parent))
        os.close(fd)
        out_path = Path(out_name)
        logger.info("Converting %s -> %s", path.name, out_path.name)
        cmd = [
            self.ffmpeg_binary, "-y", "-i", str(path),
            "-ac", "1", "-ar", str(self.target_rate), "-f", "wav", str(out_path),
        ]
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError as exc:
            out_path.unlink(missing_ok=True)
            raise AudioConversionError(f"FFmpeg conversion failed: {self.ffmpeg_binary} not found") from exc
        except subprocess.CalledProcessError as exc:
            out_path.unlink(missing_ok=True)
            stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
            reason = stderr.splitlines()[-1] if stderr else f"exit status {exc.returncode}"
            raise AudioConversionError(f"FFmpeg conversion failed: {reason}") from exc
        logger.info("Conversion completed")
        return out_path

    def _read_samples(self, path: Path) -> np.ndarray:
        frames, rate = read_wav(path)
        if frames.shape[0] == 0:
            raise AudioProcessingError("Audio processing failed: no audio samples")
        mono = downmix(frames)
        if rate != self.target_rate:
            mono = soxr.resample(mono, rate, self.target_rate).astype(np.float32)
        return np.ascontiguousarray(mono, dtype=np.float32)
