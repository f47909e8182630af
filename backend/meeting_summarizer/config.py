from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Meeting Summarizer"

    # Everything the service writes lives under base_dir
    base_dir: Path = Field(default_factory=Path.cwd)

    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    persist_meetings: bool = True
    max_upload_bytes: int = 50 * 1024 * 1024

    # Speech-to-text (faster-whisper)
    whisper_model_id: str = "tiny.en"
    whisper_device: str = "auto"  # auto|cpu|cuda
    whisper_compute_type: str = "default"
    whisper_beam_size: int = 1
    language: str = "en"
    chunk_length_s: float = 30.0
    stride_length_s: float = 5.0
    ffmpeg_binary: str = "ffmpeg"

    # Chat-completion backend (LM Studio or any OpenAI-compatible server)
    llm_api_url: str = "http://localhost:1234/v1/chat/completions"
    llm_model: str = "phi-3-mini-4k-instruct"
    llm_timeout_s: float = 120.0
    prompts_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_prefix="MS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def uploads_dir(self) -> Path:
        return self.base_dir / "uploads"

    @property
    def cache_dir(self) -> Path:
        return self.base_dir / ".cache"

    @property
    def data_dir(self) -> Path:
        return self.base_dir / "data"

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def database_path(self) -> Path:
        return self.data_dir / "meetings.db"

    def ensure_dirs(self) -> None:
        for d in [self.uploads_dir, self.cache_dir, self.data_dir, self.logs_dir]:
            d.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
