"""Build the per-batch duplicate-detection snapshot.

Both store queries fail open: if one raises, that dimension is treated as
empty and the import proceeds without it. A briefly degraded store
therefore lets duplicates through rather than blocking the whole batch.
"""

from __future__ import annotations

import logging
from types import MappingProxyType

from .models import DedupIndex

logger = logging.getLogger(__name__)

EMPTY_INDEX = DedupIndex()


def build_dedup_index(store) -> DedupIndex:
    """Query *store* once for existing URLs and CVE ids."""
    try:
        urls = frozenset(store.fetch_existing_urls())
    except Exception:
        logger.warning(
            "Failed to fetch existing URLs; URL dedup disabled for this batch",
            exc_info=True,
        )
        urls = frozenset()

    try:
        cve_ids = dict(store.fetch_existing_cve_ids())
    except Exception:
        logger.warning(
            "Failed to fetch existing CVE ids; CVE dedup disabled for this batch",
            exc_info=True,
        )
        cve_ids = {}

    logger.debug("Dedup index: %d URLs, %d CVE ids", len(urls), len(cve_ids))
    return DedupIndex(urls=urls, cve_ids=MappingProxyType(cve_ids))
