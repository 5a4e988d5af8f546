"""Configuration manager for news_translate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .schemas import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class ConfigManager:
    """Load, manage, and persist application configuration.

    An unreadable config file is moved aside to ``config.json.bak`` and
    replaced with defaults instead of stopping startup.
    """

    config_path: Path = field(default_factory=lambda: Path.home() / ".news_translate" / "config.json")
    _config: AppConfig = field(init=False)

    def __post_init__(self) -> None:
        self.config_path = Path(self.config_path).expanduser()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config = self._load_or_default()

    @property
    def config(self) -> AppConfig:
        """Return the current configuration model."""
        return self._config

    def update(self, **kwargs: Any) -> None:
        """Update configuration sections and persist to disk."""
        self._config = AppConfig.model_validate({**self._config.model_dump(), **kwargs})
        self.save()

    def save(self) -> None:
        """Persist configuration to disk."""
        self.config_path.write_text(self._config.model_dump_json(indent=2), encoding="utf-8")

    def _load_or_default(self) -> AppConfig:
        if self.config_path.exists():
            try:
                return AppConfig.model_validate_json(self.config_path.read_text(encoding="utf-8"))
            except ValidationError as exc:
                backup = self.config_path.with_name(self.config_path.name + ".bak")
                logger.warning("配置文件无效，已备份到 %s 并使用默认配置: %s", backup, exc.error_count())
                self.config_path.replace(backup)
        config = AppConfig()
        self.config_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        return config
