"""Batch import: validate, check the session, dedup, enrich, persist.

Items are processed one at a time in input order, and every item gets
exactly one result. A failure while handling one item is logged and
recorded as that item's error; it never stops the rest of the batch.
The dedup snapshot is taken once before the loop, so two items of the
same batch sharing a URL or CVE id are not detected as duplicates of
each other.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .config import (
    AUTH_ERROR_MESSAGE,
    DUPLICATE_CVE_REASON,
    DUPLICATE_URL_REASON,
    PERSISTENCE_ERROR_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
)
from .dedup import EMPTY_INDEX, build_dedup_index
from .enrichment import enrich_signal
from .errors import AuthExpiredError, PersistenceError
from .models import Actor, DedupIndex, ImportOptions, ImportResult, ImportSummary
from .schema import SignalCandidate, validate_batch

logger = logging.getLogger(__name__)


def _require_actor(session) -> Actor:
    try:
        actor = session.get_current_actor()
    except Exception:
        logger.exception("Session validation failed")
        raise AuthExpiredError(AUTH_ERROR_MESSAGE) from None
    if actor is None:
        raise AuthExpiredError(SESSION_EXPIRED_MESSAGE)
    return actor


def process_candidate(
    candidate: SignalCandidate,
    store,
    index: DedupIndex,
    options: ImportOptions,
) -> ImportResult:
    """Run one candidate through duplicate checks, enrichment and insert."""
    if options.skip_duplicates:
        if index.has_url(candidate.source_url):
            return ImportResult(candidate.title, "skipped", DUPLICATE_URL_REASON)
        if index.has_any_cve(candidate.cve_ids):
            return ImportResult(candidate.title, "skipped", DUPLICATE_CVE_REASON)

    record = enrich_signal(candidate) if options.auto_enrich else candidate

    try:
        signal_id = store.insert(record)
    except PersistenceError as exc:
        logger.error(
            "Database insert failed: title=%r source_url=%r error=%s",
            candidate.title,
            candidate.source_url,
            exc,
        )
        return ImportResult(candidate.title, "error", PERSISTENCE_ERROR_MESSAGE)

    logger.debug("Imported signal %s: %r", signal_id, candidate.title)
    return ImportResult(candidate.title, "imported")


def import_signals(
    payload: Any,
    *,
    store,
    session,
    options: ImportOptions | None = None,
) -> ImportSummary:
    """Import a raw JSON batch into *store*.

    Raises BatchValidationError if any candidate is invalid and
    AuthExpiredError if *session* has no actor; in both cases nothing is
    written. Otherwise returns a summary with one result per candidate.
    """
    options = options or ImportOptions()
    started_at = datetime.now(timezone.utc)

    batch = validate_batch(payload)
    actor = _require_actor(session)

    index = build_dedup_index(store) if options.skip_duplicates else EMPTY_INDEX

    summary = ImportSummary()
    for candidate in batch.signals:
        try:
            result = process_candidate(candidate, store, index, options)
        except Exception as exc:
            logger.exception(
                "Signal import error: title=%r error_type=%s",
                candidate.title,
                type(exc).__name__,
            )
            result = ImportResult(candidate.title, "error", UNEXPECTED_ERROR_MESSAGE)
        summary.record(result)

    logger.info(
        "Import finished for %s: %d imported, %d skipped, %d errors",
        actor.actor_id,
        summary.imported,
        summary.skipped,
        len(summary.errors),
    )

    try:
        store.log_ingestion(
            summary,
            actor_id=actor.actor_id,
            metadata=batch.metadata,
            started_at=started_at,
        )
    except Exception:
        logger.exception("Failed to record ingestion log")

    return summary
