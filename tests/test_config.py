"""Tests for configuration manager."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from news_translate.config.manager import ConfigManager
from news_translate.config.schemas import TranslationConfig


def test_config_manager_loads_defaults(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    manager = ConfigManager(config_path=config_dir / "config.json")

    assert manager.config.translation.target_language == "zh"
    assert manager.config.translation.ttl_seconds == 24 * 60 * 60
    assert manager.config.translation.max_batch_size == 20
    assert manager.config.api.endpoint.startswith("https://")
    assert (config_dir / "config.json").exists()


def test_translation_config_validates_bounds() -> None:
    with pytest.raises(ValidationError):
        TranslationConfig(max_batch_size=0)
    with pytest.raises(ValidationError):
        TranslationConfig(target_language="fr")


def test_invalid_config_is_backed_up_and_replaced(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"translation": {"max_batch_size": 0}}', encoding="utf-8")

    manager = ConfigManager(config_path=path)

    assert manager.config.translation.max_batch_size == 20
    assert (tmp_path / "config.json.bak").read_text(encoding="utf-8").startswith("{")


def test_update_rejects_invalid_values(tmp_path: Path) -> None:
    manager = ConfigManager(config_path=tmp_path / "config.json")

    with pytest.raises(ValidationError):
        manager.update(translation={"max_batch_size": 0})
    assert manager.config.translation.max_batch_size == 20
