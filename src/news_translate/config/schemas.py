"""Pydantic schemas for translator configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ApiConfig(BaseModel):
    """Credentials and endpoint configuration for the translation provider."""

    endpoint: str = "https://api.groq.com/openai/v1/chat/completions"
    api_key: Optional[str] = Field(default=None, repr=False)
    model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    system_prompt: Optional[str] = Field(default=None)
    temperature: float = Field(0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(512, ge=16)
    batch_max_tokens: int = Field(2048, ge=16)
    timeout_seconds: float = Field(15.0, gt=0)


class TranslationConfig(BaseModel):
    """Parameters controlling translation and batching behavior."""

    target_language: Literal["zh", "ja", "ko"] = "zh"
    ttl_hours: float = Field(24.0, gt=0)
    max_batch_size: int = Field(20, ge=1, le=50)
    batch_window_ms: int = Field(0, ge=0, le=2000)
    max_workers: int = Field(4, ge=1, le=32)

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 3600.0


class CacheConfig(BaseModel):
    """Where and how the translation cache snapshot is kept."""

    storage_dir: Path = Field(default_factory=lambda: Path.home() / ".news_translate" / "store")
    snapshot_key: str = "worldmonitor-translation-cache"
    max_entries: Optional[int] = Field(5000, ge=1)


class AppConfig(BaseModel):
    """Root configuration model for the application."""

    api: ApiConfig = ApiConfig()
    translation: TranslationConfig = TranslationConfig()
    cache: CacheConfig = CacheConfig()
