"""
Promotions Engine - Command-Line Entry Point
============================================

Replays a JSON-lines file of gameplay events against a promotion catalog and
prints one JSON summary line per event.

    promo-engine --promotions catalog.yaml --events events.jsonl [--backend redis]

Bootstrap
---------
- Config validation
- Logging setup
- Storage backend initialization
- Catalog load
- Event replay
- Graceful shutdown
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Iterator, Optional, Sequence

from promo_engine.core.config import Config, StorageBackend
from promo_engine.core.event import EventBus
from promo_engine.core.exceptions import PromoInfrastructureException
from promo_engine.core.logging.logger import (
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)
from promo_engine.domain.exceptions import ValidationError
from promo_engine.domain.models import DomainValidationError, GameEvent
from promo_engine.modules.events import EventProcessingService
from promo_engine.modules.promotions import PromotionService
from promo_engine.storage import Storage, create_storage

logger = get_logger(__name__)


# ============================================================================
# Arguments
# ============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promo-engine",
        description="Evaluate gameplay events against a promotion catalog.",
    )
    parser.add_argument(
        "--promotions",
        type=Path,
        required=True,
        help="promotion catalog (YAML or JSON)",
    )
    parser.add_argument(
        "--events",
        type=Path,
        required=True,
        help="gameplay events, one JSON object per line ('-' for stdin)",
    )
    parser.add_argument(
        "--backend",
        choices=[b.value for b in StorageBackend],
        default=None,
        help="storage backend (default: STORAGE_BACKEND)",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="clear storage before loading the catalog",
    )
    return parser


def _read_events(path: Path) -> Iterator[GameEvent]:
    """Yield events from a JSON-lines file, skipping blank lines."""
    handle = sys.stdin if str(path) == "-" else path.open("r", encoding="utf-8")
    try:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield GameEvent.from_dict(json.loads(line))
            except (json.JSONDecodeError, DomainValidationError) as exc:
                raise ValidationError("event", f"line {line_number}: {exc}") from exc
    finally:
        if handle is not sys.stdin:
            handle.close()


# ============================================================================
# Application
# ============================================================================


async def _startup(backend: Optional[str]) -> Storage:
    """Validate configuration and initialize the storage backend."""
    logger.info("========== PROMO ENGINE INITIALIZATION START ==========")

    if backend is not None:
        os.environ["STORAGE_BACKEND"] = backend
    Config.validate()
    logger.info("Configuration validated", extra=Config.get_config_summary())

    storage = await create_storage(Config.storage_backend())
    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return storage


async def _shutdown(storage: Optional[Storage]) -> None:
    if storage is None:
        return
    try:
        await storage.close()
        logger.info("Storage closed")
    except Exception as exc:
        logger.error(f"Storage shutdown error: {exc}", exc_info=True)


async def run(args: argparse.Namespace) -> int:
    """Load the catalog, replay events and print summaries. Returns the exit code."""
    storage: Optional[Storage] = None
    try:
        storage = await _startup(args.backend)
        event_bus = EventBus()
        promotions = PromotionService(storage, event_bus)
        events = EventProcessingService(storage, event_bus)

        if args.reset:
            await events.reset()
        loaded = await promotions.load_catalog(args.promotions)
        logger.info("Catalog ready", extra={"promotion_count": len(loaded)})

        processed = 0
        for event in _read_events(args.events):
            result = await events.process_event(event)
            print(json.dumps(result.to_dict(), ensure_ascii=False), flush=True)
            processed += 1

        await event_bus.drain()
        health = get_logging_health()
        logger.info(
            "Replay complete",
            extra={
                "events_processed": processed,
                "log_records_enqueued": health.records_enqueued,
                "log_records_dropped": health.records_dropped,
            },
        )
        return 0

    except ValidationError as exc:
        logger.error(f"Invalid input: {exc}")
        for problem in exc.problems:
            print(problem, file=sys.stderr)
        return 2

    except PromoInfrastructureException as exc:
        logger.error(
            f"Infrastructure failure: {exc}",
            extra={"error_code": exc.error_code, "is_retryable": exc.is_retryable},
        )
        print(exc.message, file=sys.stderr)
        return 1

    finally:
        await _shutdown(storage)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(log_to_file=False, stream=sys.stderr)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Replay interrupted")
        return 130
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
