"""Command-line entry point for news_translate."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .config.manager import ConfigManager
from .config.schemas import AppConfig
from .core.coordinator import TranslationCoordinator
from .core.models import SourceItem
from .core.service import TranslationService
from .core.translator import Translator
from .infra.logging import setup_logging

logger = logging.getLogger(__name__)


def build_coordinator(config: AppConfig) -> Tuple[TranslationService, TranslationCoordinator]:
    """Wire the service, provider client and coordinator from ``config``."""
    service = TranslationService.from_config(config.translation, config.cache)
    coordinator = TranslationCoordinator(
        service,
        Translator(config.api),
        config=config.translation,
        system_prompt=config.api.system_prompt,
    )
    return service, coordinator


def load_items(raw: str) -> List[SourceItem]:
    """Parse a JSON list of ``{"id", "title", "summary"?}`` objects.

    Raises:
        ValueError: If the document is not a list of items with id and title.
    """
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("expected a JSON list of items")
    items = []
    for position, obj in enumerate(data):
        if not isinstance(obj, dict) or "title" not in obj:
            raise ValueError(f"item {position} has no title")
        items.append(
            SourceItem(
                id=str(obj.get("id", position)),
                title=str(obj["title"]),
                summary=obj.get("summary") or None,
            )
        )
    return items


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="news-translate", description="Translate news titles and summaries.")
    parser.add_argument("input", nargs="?", help="JSON file with items (default: stdin)")
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--single", action="store_true", help="translate items one call at a time")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--log-file", type=Path, default=None, help="also write logs to this file (rotated at 5 MB)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Translate items from a JSON file or stdin and print them as JSON.

    Args:
        argv: Optional command line arguments.

    Returns:
        Process exit code.
    """
    args = _parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)

    config_manager = ConfigManager(config_path=args.config) if args.config else ConfigManager()
    raw = Path(args.input).read_text(encoding="utf-8") if args.input else sys.stdin.read()
    try:
        items = load_items(raw)
    except ValueError as exc:
        logger.error("输入格式错误: %s", exc)
        return 2

    service, coordinator = build_coordinator(config_manager.config)
    with service, coordinator:
        if args.single:
            output = []
            for item in items:
                result = coordinator.translate(item)
                output.append({"id": item.id, "title": result.title, "summary": result.summary})
        else:
            output = [
                {"id": r.id, "title": r.title, "summary": r.summary}
                for r in coordinator.translate_batch(items)
            ]

    stats = coordinator.stats
    logger.info("完成: API调用 %d 次，缓存命中 %d 次", stats.provider_calls, stats.cache_hits)
    json.dump(output, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
