"""Dataclasses for import results, dedup snapshots, actors, and rate limits."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Literal

ImportStatus = Literal["imported", "skipped", "error"]


@dataclass
class ImportOptions:
    """Caller-supplied switches for one import run."""

    skip_duplicates: bool = True
    auto_enrich: bool = True


@dataclass
class ImportResult:
    """Outcome for a single candidate in a batch."""

    title: str
    status: ImportStatus
    error: str | None = None  # skip reason or generic error message

    def to_dict(self) -> dict:
        data = {"title": self.title, "status": self.status}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ImportSummary:
    """Counts plus per-item results, ordered like the input batch."""

    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    details: list[ImportResult] = field(default_factory=list)

    @classmethod
    def rejected(cls, errors: list[str]) -> ImportSummary:
        """Summary for a batch that was refused before any item ran."""
        return cls(errors=list(errors))

    def record(self, result: ImportResult) -> None:
        self.details.append(result)
        if result.status == "imported":
            self.imported += 1
        elif result.status == "skipped":
            self.skipped += 1
        else:
            self.errors.append(f"{result.title}: {result.error}")

    def to_dict(self) -> dict:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "details": [d.to_dict() for d in self.details],
        }


@dataclass
class ValidationReport:
    """Result of validate-only mode."""

    valid: bool
    count: int
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "count": self.count, "errors": list(self.errors)}


@dataclass(frozen=True)
class DedupIndex:
    """Snapshot of stored URLs and CVE ids, taken once per batch."""

    urls: frozenset[str] = frozenset()
    cve_ids: Mapping[str, bool] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def has_url(self, url: str | None) -> bool:
        return bool(url) and url in self.urls

    def has_any_cve(self, cve_ids: list[str] | None) -> bool:
        return any(cve_id in self.cve_ids for cve_id in cve_ids or ())


@dataclass
class Actor:
    """The authenticated identity running an operation."""

    actor_id: str
    email: str | None = None


@dataclass
class RateLimitBucket:
    """Request count for one key within its current window."""

    count: int
    reset_at: float  # epoch seconds


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_seconds: int


@dataclass
class IngestionLog:
    """One recorded import run."""

    log_id: str
    status: str  # "success" or "error"
    signals_found: int
    signals_imported: int
    signals_skipped: int
    signals_errored: int
    actor_id: str | None = None
    import_source: str | None = None
    batch_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
