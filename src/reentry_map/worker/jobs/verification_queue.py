"""Batch job entrypoint that drains the suggestion verification queue."""

from __future__ import annotations

import logging
import os
import sys

from reentry_map.services.factories import build_verification_services
from reentry_map.settings import get_settings

LOGGER = logging.getLogger("reentry_map.worker.jobs.verification_queue")


def _configure_logging() -> None:
    level_name = os.getenv("REENTRY_RUNTIME__LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in {"1", "true", "yes", "on"}


def main() -> int:
    """Entry point executed by the scheduled job container."""

    _configure_logging()
    settings = get_settings()

    raw_batch = os.getenv("REENTRY_VERIFICATION_QUEUE__BATCH_SIZE")
    batch_size = int(raw_batch) if raw_batch else settings.verification.default_batch_size
    reverify_limit = int(os.getenv("REENTRY_VERIFICATION_QUEUE__REVERIFY_LIMIT", "0") or 0)
    dry_run = _env_flag("REENTRY_VERIFICATION_QUEUE__DRY_RUN")

    try:
        services = build_verification_services(settings=settings)
    except Exception:
        LOGGER.exception("Failed to initialise verification services")
        return 1

    try:
        return _run(services, batch_size=batch_size, reverify_limit=reverify_limit, dry_run=dry_run)
    finally:
        services.close()


def _run(services, *, batch_size: int, reverify_limit: int, dry_run: bool) -> int:
    if dry_run:
        pending = services.suggestion_store.list_pending(limit=services.queue.clamp_batch_size(batch_size))
        for candidate in pending:
            LOGGER.info("Dry run: would verify suggestion_id=%s name=%s", candidate.id, candidate.name)
        LOGGER.info("Dry run complete pending=%s", len(pending))
        return 0

    summary = services.queue.process_queue(batch_size)
    if reverify_limit > 0:
        decisions = services.queue.reverify_due(limit=reverify_limit)
        LOGGER.info("Re-verified %s published resource(s)", len(decisions))

    LOGGER.info(
        "Verification batch complete: processed=%s approved=%s flagged=%s rejected=%s duplicates=%s errors=%s cost_usd=%.4f",
        summary.processed,
        summary.approved,
        summary.flagged,
        summary.rejected,
        summary.duplicates,
        summary.errors,
        summary.total_cost_usd,
    )
    for failure in summary.failures:
        LOGGER.error("Failed suggestion_id=%s name=%s error=%s", failure.suggestion_id, failure.name, failure.error)

    return 0 if summary.errors == 0 else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
