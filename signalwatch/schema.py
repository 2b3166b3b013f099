"""Pydantic models for the JSON import payload, plus validate-only mode."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import MAX_BATCH_SIZE
from .errors import BatchValidationError
from .models import ValidationReport


class SignalCategory(str, Enum):
    CVE = "cve"
    ADVISORY = "advisory"
    APT = "apt"
    MALWARE = "malware"
    NEWS = "news"
    RESEARCH = "research"
    EXPLOIT = "exploit"
    VULNERABILITY = "vulnerability"
    INCIDENT = "incident"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class SourceType(str, Enum):
    RSS = "rss"
    API = "api"
    SCRAPER = "scraper"
    MANUAL = "manual"


def _require_iso_string(value: Any) -> Any:
    # Numbers would otherwise be read as epoch timestamps
    if value is None or isinstance(value, (str, datetime)):
        return value
    raise ValueError("Expected an ISO-8601 datetime string")


class SignalCandidate(BaseModel):
    """A single signal in the import payload."""

    title: str = Field(..., min_length=10, max_length=500)
    summary: str | None = None
    full_content: str | None = None
    signal_category: SignalCategory = SignalCategory.NEWS
    severity: Severity = Severity.MEDIUM
    # None means "compute during enrichment"
    confidence_level: int | None = Field(default=None, ge=0, le=100, strict=True)

    source_id: UUID | None = None
    source_name: str | None = None
    source_type: SourceType | None = None
    source_url: str | None = None
    source_date: datetime | None = None

    cve_ids: list[str] | None = None
    threat_actors: list[str] | None = None
    malware_families: list[str] | None = None
    campaign_names: list[str] | None = None
    target_industries: list[str] | None = None
    target_regions: list[str] | None = None
    motivation: str | None = None
    attack_phase: str | None = None
    ioc_types: list[str] | None = None
    affected_products: list[str] | None = None
    exploit_type: str | None = None
    mitre_tactics: list[str] | None = None
    mitre_techniques: list[str] | None = None

    is_fraud_trust_safety: bool = Field(default=False, strict=True)
    is_featured: bool = Field(default=False, strict=True)
    is_verified: bool = Field(default=False, strict=True)
    tag_ids: list[UUID] | None = None

    @field_validator("source_date", mode="before")
    @classmethod
    def _check_date(cls, value: Any) -> Any:
        return _require_iso_string(value)

    @field_validator("source_url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        # Stored verbatim: dedup compares the exact string.
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid url")
        return value


class ImportMetadata(BaseModel):
    import_source: str | None = None
    import_date: datetime | None = None
    batch_id: str | None = None
    total_signals: int | None = Field(default=None, strict=True)

    @field_validator("import_date", mode="before")
    @classmethod
    def _check_date(cls, value: Any) -> Any:
        return _require_iso_string(value)


class ImportBatch(BaseModel):
    """Top-level JSON import payload."""

    metadata: ImportMetadata | None = None
    signals: list[SignalCandidate] = Field(..., max_length=MAX_BATCH_SIZE)


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err["loc"]) or "payload"
        messages.append(f"{path}: {err['msg']}")
    return messages


def validate_batch(payload: Any) -> ImportBatch:
    """Parse a raw payload into an ImportBatch.

    Raises BatchValidationError listing every offending field if any
    candidate is invalid; a batch is never partially accepted.
    """
    try:
        return ImportBatch.model_validate(payload)
    except ValidationError as exc:
        raise BatchValidationError(_format_errors(exc)) from exc


def validate_signals_json(payload: Any) -> ValidationReport:
    """Check a payload without importing it."""
    try:
        batch = validate_batch(payload)
    except BatchValidationError as exc:
        return ValidationReport(valid=False, count=0, errors=exc.errors)
    return ValidationReport(valid=True, count=len(batch.signals))


def load_payload(path: Path) -> Any:
    """Read a JSON batch file."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise BatchValidationError(
            [f"payload: invalid JSON ({exc.msg} at line {exc.lineno})"]
        ) from exc
