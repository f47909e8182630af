from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

import numpy as np

from meeting_summarizer.config import Settings
from meeting_summarizer.errors import TranscriptionError


logger = logging.getLogger("meeting_summarizer.asr")

SAMPLE_RATE = 16000


@dataclass
class ASRConfig:
    model_id: str = "tiny.en"
    device: str = "auto"  # auto|cpu|cuda
    compute_type: str = "default"
    language: str = "en"
    task: str = "transcribe"
    beam_size: int = 1
    chunk_length_s: float = 30.0
    stride_length_s: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ASRConfig":
        return cls(
            model_id=settings.whisper_model_id,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
            language=settings.language,
            beam_size=settings.whisper_beam_size,
            chunk_length_s=settings.chunk_length_s,
            stride_length_s=settings.stride_length_s,
        )


@dataclass(frozen=True)
class Window:
    """One analysis window in samples, plus the span of it whose words are kept."""

    start: int
    end: int
    keep_from: float  # seconds, absolute
    keep_to: float


def iter_windows(
    n_samples: int,
    chunk_length_s: float,
    stride_length_s: float,
    rate: int = SAMPLE_RATE,
) -> Iterator[Window]:
    """Yield overlapping windows whose kept spans tile [0, duration) exactly once."""
    chunk = int(round(chunk_length_s * rate))
    stride = int(round(stride_length_s * rate))
    step = chunk - 2 * stride
    if step <= 0:
        raise ValueError("chunk_length_s must exceed twice stride_length_s")

    start = 0
    while True:
        end = min(start + chunk, n_samples)
        last = end >= n_samples
        keep_from = (start + stride) / rate if start > 0 else 0.0
        keep_to = math.inf if last else (end - stride) / rate
        yield Window(start=start, end=end, keep_from=keep_from, keep_to=keep_to)
        if last:
            return
        start += step


# Process-wide model handle, created once on first use
_model: Any = None
_model_lock = threading.Lock()


def _load_model(cfg: ASRConfig, download_root: Path) -> Any:
    # Lazy import to avoid heavy module import during app startup
    from faster_whisper import WhisperModel  # type: ignore

    return WhisperModel(
        cfg.model_id,
        device=cfg.device,
        compute_type=cfg.compute_type,
        download_root=str(download_root),
    )


def get_model(cfg: ASRConfig, download_root: Path) -> Any:
    global _model
    if _model is not None:
        return _model
    with _model_lock:
        # Concurrent first callers wait here and reuse the winner's handle
        if _model is None:
            logger.info("Loading Whisper model %s (device=%s)", cfg.model_id, cfg.device)
            started = time.perf_counter()
            _model = _load_model(cfg, download_root)
            logger.info("Whisper model loaded in %.2fs", time.perf_counter() - started)
    return _model


def is_model_loaded() -> bool:
    return _model is not None


def _timed_pieces(segment: Any) -> Iterator[Tuple[float, str]]:
    words = getattr(segment, "words", None)
    if words:
        for w in words:
            yield float(w.start), str(w.word)
    else:
        yield float(segment.start or 0.0), str(segment.text or "")


class WhisperTranscriber:
    """Thin wrapper around faster-whisper with fixed chunking parameters."""

    def __init__(self, cfg: Optional[ASRConfig] = None, settings: Optional[Settings] = None) -> None:
        s = settings or Settings()
        self.cfg = cfg or ASRConfig.from_settings(s)
        self.download_root = (s.cache_dir / "whisper").resolve()

    def transcribe(self, samples: np.ndarray) -> str:
        try:
            model = get_model(self.cfg, self.download_root)
            logger.info("Transcribing %d samples with Whisper", len(samples))
            started = time.perf_counter()
            pieces = self._transcribe_windows(model, samples)
            logger.info("Transcription completed in %.2fs", time.perf_counter() - started)
        except Exception as exc:
            raise TranscriptionError(f"Failed to transcribe: {exc}") from exc

        transcript = "".join(pieces).strip()
        if not transcript:
            raise TranscriptionError("Failed to transcribe: Empty transcription")
        logger.info("Transcribed %d characters", len(transcript))
        logger.info('Preview: "%s..."', transcript[:100])
        return transcript

    def _transcribe_windows(self, model: Any, samples: np.ndarray) -> List[str]:
        pieces: List[str] = []
        for win in iter_windows(len(samples), self.cfg.chunk_length_s, self.cfg.stride_length_s):
            offset = win.start / SAMPLE_RATE
            segments, _info = model.transcribe(
                samples[win.start:win.end],
                language=self.cfg.language,
                task=self.cfg.task,
                beam_size=self.cfg.beam_size,
                word_timestamps=True,
                condition_on_previous_text=False,
                vad_filter=False,
            )
            for seg in segments:
                for t, text in _timed_pieces(seg):
                    # Words in the stride margins belong to the neighbouring window
                    if win.keep_from <= offset + t < win.keep_to:
                        pieces.append(text)
        return pieces
