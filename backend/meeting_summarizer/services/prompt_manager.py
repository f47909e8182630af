"""Prompt templates for the chat-completion backend.

Templates are plain data: the built-in defaults below can be overridden
field-by-field from a JSON file (``MS_PROMPTS_FILE``), e.g.::

    {"summary": {"temperature": 0.5}, "action_items": {"max_tokens": 300}}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger("meeting_summarizer.prompts")


class PromptTemplate(BaseModel):
    system: str
    # Must contain a {transcript} placeholder
    user: str
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)

    def render(self, transcript: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user.format(transcript=transcript)},
        ]


SUMMARY_PROMPT = PromptTemplate(
    system="You are a professional meeting summarizer.",
    user=(
        "Analyze this meeting transcript and provide a concise summary covering:\n"
        "1. Key Decisions Made\n"
        "2. Important Discussion Points\n"
        "3. Overall meeting outcome\n\n"
        "Transcript:\n{transcript}\n\n"
        "Summary:"
    ),
    temperature=0.3,
    max_tokens=500,
)

ACTION_ITEMS_PROMPT = PromptTemplate(
    system="You extract actionable tasks from meeting transcripts.",
    user=(
        "Extract all action items from this meeting transcript.\n"
        "List each action item as a clear, concise task.\n"
        "Format each item on a new line starting with a dash (-).\n\n"
        "Transcript:\n{transcript}\n\n"
        "Action Items:"
    ),
    temperature=0.2,
    max_tokens=400,
)


class PromptSet(BaseModel):
    summary: PromptTemplate = Field(default_factory=lambda: SUMMARY_PROMPT.model_copy())
    action_items: PromptTemplate = Field(default_factory=lambda: ACTION_ITEMS_PROMPT.model_copy())


DEFAULT_PROMPTS = PromptSet()


def deep_merge_dict(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = deep_merge_dict(dict(dst.get(k, {})), v)
        else:
            dst[k] = v
    return dst


def load_prompts(path: Optional[Path] = None) -> PromptSet:
    """Return the default prompts, patched with overrides from ``path`` if given."""
    if path is None:
        return DEFAULT_PROMPTS
    overrides = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(overrides, dict):
        raise ValueError(f"Prompt overrides in {path} must be a JSON object")
    merged = deep_merge_dict(DEFAULT_PROMPTS.model_dump(), overrides)
    logger.info("Loaded prompt overrides from %s", path)
    return PromptSet(**merged)
