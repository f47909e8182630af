from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type
import logging

import requests
from requests.adapters import HTTPAdapter

from meeting_summarizer.config import Settings
from meeting_summarizer.errors import (
    ActionItemsUnavailable,
    BackendUnavailableError,
    SummarizationUnavailable,
)
from meeting_summarizer.services.prompt_manager import PromptSet, PromptTemplate, load_prompts


logger = logging.getLogger("meeting_summarizer.llm")

NO_ACTION_ITEMS = "No specific action items identified."
SUMMARY_UNAVAILABLE = "Summary unavailable. Ensure LM Studio is running. Error: {error}"
ACTION_ITEMS_UNAVAILABLE = "Action items extraction unavailable. Error: {error}"


@dataclass
class LlmConfig:
    api_url: str = "http://localhost:1234/v1/chat/completions"
    model: str = "phi-3-mini-4k-instruct"
    timeout_s: float = 120.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LlmConfig":
        return cls(api_url=settings.llm_api_url, model=settings.llm_model, timeout_s=settings.llm_timeout_s)


def parse_action_items(text: str) -> List[str]:
    """Keep dash-prefixed lines only, without the dash; never returns an empty list."""
    items = []
    for line in (text or "").splitlines():
        s = line.strip()
        if not s.startswith("-"):
            continue
        item = s[1:].strip()
        if item:
            items.append(item)
    return items or [NO_ACTION_ITEMS]


def _session_without_retries() -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class SummarizationClient:
    """Chat-completion client for the local language model.

    Both public operations are best-effort: backend failures are logged and
    turned into placeholder values so the request can still complete.
    """

    def __init__(
        self,
        cfg: Optional[LlmConfig] = None,
        prompts: Optional[PromptSet] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cfg = cfg or LlmConfig()
        self.prompts = prompts or load_prompts()
        self.session = session or _session_without_retries()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SummarizationClient":
        return cls(LlmConfig.from_settings(settings), load_prompts(settings.prompts_file))

    def summarize(self, transcript: str) -> str:
        try:
            return self._chat(self.prompts.summary, transcript, SummarizationUnavailable)
        except SummarizationUnavailable as exc:
            logger.warning("Summary error: %s", exc)
            return SUMMARY_UNAVAILABLE.format(error=exc)

    def extract_action_items(self, transcript: str) -> List[str]:
        try:
            content = self._chat(self.prompts.action_items, transcript, ActionItemsUnavailable)
        except ActionItemsUnavailable as exc:
            logger.warning("Action items error: %s", exc)
            return [ACTION_ITEMS_UNAVAILABLE.format(error=exc)]
        return parse_action_items(content)

    def _chat(
        self,
        template: PromptTemplate,
        transcript: str,
        error_cls: Type[BackendUnavailableError],
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.cfg.model,
            "messages": template.render(transcript),
            "temperature": template.temperature,
            "max_tokens": template.max_tokens,
        }
        try:
            resp = self.session.post(self.cfg.api_url, json=payload, timeout=self.cfg.timeout_s)
        except requests.RequestException as exc:
            raise error_cls(f"LM Studio request failed: {exc}") from exc
        if not resp.ok:
            raise error_cls(f"LM Studio error: {resp.status_code}")
        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise error_cls(f"Malformed response from LM Studio: {exc}") from exc
        content = (content or "").strip()
        if not content:
            raise error_cls("Empty response from LM Studio")
        return content
