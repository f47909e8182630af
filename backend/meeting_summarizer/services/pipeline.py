"""Request pipeline: normalize → transcribe → summarize → extract → persist.

Stages run strictly in order inside the calling thread. Normalization and
transcription failures end the request; the summarization stages degrade to
placeholders inside the client; a failed save is logged and reported in the
result instead of failing the request. The uploaded file is always removed.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
from sqlalchemy.engine import Engine
from sqlmodel import Session

from meeting_summarizer.config import Settings
from meeting_summarizer.errors import PersistenceError
from meeting_summarizer.models.base import get_engine
from meeting_summarizer.models.meeting import Meeting
from meeting_summarizer.repositories.meetings import MeetingsRepository
from meeting_summarizer.services.asr_engine import WhisperTranscriber
from meeting_summarizer.services.audio_normalizer import AudioNormalizer
from meeting_summarizer.services.summarization_service import SummarizationClient


logger = logging.getLogger("meeting_summarizer.pipeline")

RULE = "=" * 70


@dataclass
class UploadedAudio:
    path: Path
    filename: str
    size: int
    # time.perf_counter() when the request arrived
    received_at: float = field(default_factory=time.perf_counter)


@dataclass
class PipelineResult:
    transcript: str
    summary: str
    action_items: List[str]
    filename: str
    processed_at: datetime
    processing_time: Optional[float] = None
    saved: Optional[bool] = None
    meeting_id: Optional[int] = None
    save_error: Optional[str] = None


class MeetingPipeline:
    def __init__(
        self,
        normalizer: AudioNormalizer,
        transcriber: WhisperTranscriber,
        summarizer: SummarizationClient,
        engine_factory: Optional[Callable[[], Engine]] = None,
    ) -> None:
        self.normalizer = normalizer
        self.transcriber = transcriber
        self.summarizer = summarizer
        # None disables persistence
        self.engine_factory = engine_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "MeetingPipeline":
        return cls(
            AudioNormalizer(settings),
            WhisperTranscriber(settings=settings),
            SummarizationClient.from_settings(settings),
            engine_factory=get_engine if settings.persist_meetings else None,
        )

    def run(self, upload: UploadedAudio) -> PipelineResult:
        logger.info(RULE)
        logger.info("Processing: %s", upload.filename)
        logger.info("Size: %.2f KB", upload.size / 1024)
        logger.info(RULE)
        try:
            samples = self._normalize(upload.path)
            transcript = self.transcriber.transcribe(samples)

            summary = self.summarizer.summarize(transcript)
            logger.info("SUMMARY:\n%s", summary)

            action_items = self.summarizer.extract_action_items(transcript)
            logger.info(
                "ACTION ITEMS:\n%s",
                "\n".join(f"{idx}. {item}" for idx, item in enumerate(action_items, start=1)),
            )

            result = PipelineResult(
                transcript=transcript,
                summary=summary,
                action_items=action_items,
                filename=upload.filename,
                processed_at=datetime.now(timezone.utc),
            )
            if self.engine_factory is not None:
                result.processing_time = round(time.perf_counter() - upload.received_at, 2)
                self._persist(result, upload, self.engine_factory)
            result.processed_at = datetime.now(timezone.utc)
            return result
        finally:
            self._cleanup(upload.path)

    def _normalize(self, path: Path) -> np.ndarray:
        logger.info("Reading audio file: %s", path.name)
        samples = self.normalizer.load(path)
        logger.info("Processed %d audio samples", len(samples))
        return samples

    def _persist(
        self, result: PipelineResult, upload: UploadedAudio, engine_factory: Callable[[], Engine]
    ) -> None:
        meeting = Meeting(
            filename=upload.filename,
            transcript=result.transcript,
            summary=result.summary,
            action_items=list(result.action_items),
            file_size=upload.size,
            processing_time=result.processing_time,
        )
        try:
            with Session(engine_factory()) as session:
                result.meeting_id = MeetingsRepository(session).insert(meeting)
            result.saved = True
            logger.info("Saved meeting %s", result.meeting_id)
        except PersistenceError as exc:
            logger.error("Failed to save meeting: %s", exc.message)
            result.saved = False
            result.save_error = exc.message

    def _cleanup(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
            logger.info("Temporary file cleaned up: %s", path.name)
        except OSError as exc:
            logger.warning("Could not remove temporary file %s: %s", path, exc)
