"""Shared fixtures: isolated settings/database per test and fakes for external models."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from meeting_summarizer.config import get_settings
from meeting_summarizer.models.base import dispose_engine, init_db
from meeting_summarizer.services import asr_engine


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("MS_BASE_DIR", str(tmp_path))
    monkeypatch.setenv("MS_PERSIST_MEETINGS", "true")
    get_settings.cache_clear()
    dispose_engine()
    s = get_settings()
    s.ensure_dirs()
    init_db()
    yield s
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _fresh_whisper_handle(monkeypatch):
    monkeypatch.setattr(asr_engine, "_model", None)


class FakeNormalizer:
    def __init__(self, samples: Optional[np.ndarray] = None, error: Optional[Exception] = None) -> None:
        self.samples = samples if samples is not None else np.zeros(16000, dtype=np.float32)
        self.error = error
        self.calls = 0

    def load(self, path):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.samples


class FakeTranscriber:
    def __init__(self, text: str = "We agreed to ship on Friday.", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls = 0

    def transcribe(self, samples):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


class FakeSummarizer:
    def __init__(self, summary: str = "Decided to ship on Friday.", items: Optional[List[str]] = None) -> None:
        self.summary = summary
        self.items = ["Ship the release"] if items is None else items

    def summarize(self, transcript):
        return self.summary

    def extract_action_items(self, transcript):
        return list(self.items)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


def chat_payload(content: str) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakeSession:
    """Stands in for requests.Session; replays responses or raises ``error``."""

    def __init__(self, responses: Optional[List[FakeResponse]] = None, error: Optional[Exception] = None) -> None:
        self.responses = list(responses or [])
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def word(start: float, text: str) -> SimpleNamespace:
    return SimpleNamespace(start=start, end=start + 0.4, word=text)


def segment(words: List[SimpleNamespace]) -> SimpleNamespace:
    return SimpleNamespace(
        start=words[0].start if words else 0.0,
        end=words[-1].end if words else 0.0,
        text="".join(w.word for w in words),
        words=words,
    )
