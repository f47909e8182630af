"""Tests for the Whisper transcription adapter: windowing, stitching, singleton."""
from __future__ import annotations

import math
import threading
import time

import numpy as np
import pytest

from conftest import segment, word
from meeting_summarizer.config import Settings
from meeting_summarizer.errors import TranscriptionError
from meeting_summarizer.services import asr_engine
from meeting_summarizer.services.asr_engine import ASRConfig, WhisperTranscriber, iter_windows

RATE = 16000


class TimelineModel:
    """Fake WhisperModel that 'hears' words placed on an absolute timeline."""

    def __init__(self, timeline, window_starts_s):
        self.timeline = timeline
        self.window_starts_s = list(window_starts_s)
        self.kwargs = []

    def transcribe(self, audio, **kwargs):
        self.kwargs.append(kwargs)
        offset = self.window_starts_s[len(self.kwargs) - 1]
        duration = len(audio) / RATE
        heard = [word(t - offset, w) for t, w in self.timeline if offset <= t < offset + duration]
        return iter([segment(heard)] if heard else []), {"duration": duration}


def test_short_audio_is_a_single_window():
    windows = list(iter_windows(10 * RATE, 30, 5))
    assert len(windows) == 1
    assert windows[0].start == 0 and windows[0].end == 10 * RATE
    assert windows[0].keep_from == 0.0 and windows[0].keep_to == math.inf


def test_windows_overlap_by_stride_and_keep_spans_tile():
    windows = list(iter_windows(70 * RATE, 30, 5))
    assert [w.start // RATE for w in windows] == [0, 20, 40]
    assert [w.end // RATE for w in windows] == [30, 50, 70]
    assert [(w.keep_from, w.keep_to) for w in windows] == [(0.0, 25.0), (25.0, 45.0), (45.0, math.inf)]


def test_stride_must_leave_a_positive_step():
    with pytest.raises(ValueError):
        list(iter_windows(RATE, 10, 5))


def test_overlapping_words_are_kept_once(monkeypatch, tmp_path):
    timeline = [(2.0, " Hello"), (22.0, " overlap"), (27.0, " world"), (38.0, " again")]
    model = TimelineModel(timeline, window_starts_s=[0, 20])
    monkeypatch.setattr(asr_engine, "_model", model)

    text = WhisperTranscriber(settings=Settings(base_dir=tmp_path)).transcribe(np.zeros(40 * RATE, dtype=np.float32))

    assert text == "Hello overlap world again"
    assert len(model.kwargs) == 2
    for kw in model.kwargs:
        assert kw["language"] == "en"
        assert kw["task"] == "transcribe"
        assert kw["word_timestamps"] is True


def test_whitespace_only_transcript_is_an_error(monkeypatch, tmp_path):
    monkeypatch.setattr(asr_engine, "_model", TimelineModel([(1.0, "   ")], window_starts_s=[0]))
    with pytest.raises(TranscriptionError, match="Empty transcription"):
        WhisperTranscriber(settings=Settings(base_dir=tmp_path)).transcribe(np.zeros(5 * RATE, dtype=np.float32))


def test_model_failure_is_wrapped(monkeypatch, tmp_path):
    class Exploding:
        def transcribe(self, audio, **kwargs):
            raise RuntimeError("CUDA out of memory")

    monkeypatch.setattr(asr_engine, "_model", Exploding())
    with pytest.raises(TranscriptionError, match="Failed to transcribe: CUDA out of memory"):
        WhisperTranscriber(settings=Settings(base_dir=tmp_path)).transcribe(np.zeros(RATE, dtype=np.float32))


def test_concurrent_first_use_loads_model_once(monkeypatch, tmp_path):
    loads = []

    def slow_load(cfg, download_root):
        time.sleep(0.05)
        handle = object()
        loads.append(handle)
        return handle

    monkeypatch.setattr(asr_engine, "_load_model", slow_load)
    assert not asr_engine.is_model_loaded()

    barrier = threading.Barrier(8)
    handles = []

    def worker():
        barrier.wait()
        handles.append(asr_engine.get_model(ASRConfig(), tmp_path))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(loads) == 1
    assert len(handles) == 8 and all(h is loads[0] for h in handles)
    assert asr_engine.is_model_loaded()


def test_config_follows_settings(tmp_path):
    s = Settings(base_dir=tmp_path, whisper_model_id="base.en", chunk_length_s=20, stride_length_s=2)
    t = WhisperTranscriber(settings=s)
    assert t.cfg.model_id == "base.en"
    assert t.cfg.chunk_length_s == 20 and t.cfg.stride_length_s == 2
    assert t.download_root == (tmp_path / ".cache" / "whisper").resolve()
