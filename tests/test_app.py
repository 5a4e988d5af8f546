"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from news_translate import app
from news_translate.config.manager import ConfigManager
from news_translate.config.schemas import CacheConfig

from conftest import DummyProvider


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    ConfigManager(config_path=path).update(cache=CacheConfig(storage_dir=tmp_path / "store"))
    return path


@pytest.fixture
def provider(monkeypatch) -> DummyProvider:
    provider = DummyProvider(["1. Title: 市中心起火\n2. Title: 股市上涨"])
    monkeypatch.setattr(app, "Translator", lambda *_args, **_kwargs: provider)
    monkeypatch.setattr(app, "setup_logging", lambda **_kwargs: None)
    return provider


def test_load_items_validates_input() -> None:
    items = app.load_items('[{"id": 7, "title": "A", "summary": ""}, {"title": "B"}]')

    assert [(i.id, i.title, i.summary) for i in items] == [("7", "A", None), ("1", "B", None)]
    with pytest.raises(ValueError):
        app.load_items('{"title": "A"}')
    with pytest.raises(ValueError):
        app.load_items('[{"id": "x"}]')


def test_main_translates_batch_and_persists_cache(tmp_path: Path, config_path: Path, provider, capsys) -> None:
    source = tmp_path / "items.json"
    source.write_text(
        json.dumps([{"id": "a", "title": "Fire downtown"}, {"id": "b", "title": "Markets rally"}]),
        encoding="utf-8",
    )

    assert app.main([str(source), "--config", str(config_path)]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output == [
        {"id": "a", "title": "市中心起火", "summary": None},
        {"id": "b", "title": "股市上涨", "summary": None},
    ]
    assert provider.calls == 1
    assert (tmp_path / "store" / "worldmonitor-translation-cache.json").exists()

    assert app.main([str(source), "--config", str(config_path), "--single"]) == 0
    assert provider.calls == 1


def test_main_rejects_bad_input(tmp_path: Path, config_path: Path, provider) -> None:
    source = tmp_path / "items.json"
    source.write_text("not json", encoding="utf-8")

    assert app.main([str(source), "--config", str(config_path)]) == 2
    assert provider.calls == 0


def test_main_passes_log_file_to_logging(tmp_path: Path, config_path: Path, provider, monkeypatch) -> None:
    captured = {}
    monkeypatch.setattr(app, "setup_logging", lambda **kwargs: captured.update(kwargs))
    source = tmp_path / "items.json"
    source.write_text(json.dumps([{"id": "a", "title": "Fire downtown"}]), encoding="utf-8")
    log_file = tmp_path / "logs" / "news.log"

    assert app.main([str(source), "--config", str(config_path), "--log-file", str(log_file)]) == 0
    assert captured["log_file"] == log_file
