"""SQLite store for signals and ingestion logs."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from .config import DB_PATH, DEFAULT_CONFIDENCE
from .errors import PersistenceError
from .models import ImportSummary, IngestionLog
from .schema import ImportMetadata, SignalCandidate

logger = logging.getLogger(__name__)

# Array-valued fields are stored as JSON text
_ARRAY_COLUMNS = (
    "cve_ids",
    "threat_actors",
    "malware_families",
    "campaign_names",
    "target_industries",
    "target_regions",
    "ioc_types",
    "affected_products",
    "mitre_tactics",
    "mitre_techniques",
    "tag_ids",
)

_SCALAR_COLUMNS = (
    "title",
    "summary",
    "full_content",
    "signal_category",
    "severity",
    "confidence_level",
    "source_id",
    "source_name",
    "source_type",
    "source_url",
    "source_date",
    "motivation",
    "attack_phase",
    "exploit_type",
    "is_fraud_trust_safety",
    "is_featured",
    "is_verified",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class SignalStore:
    """Persistent table of accepted signals.

    Exposes the three calls the importer needs (existing URLs, existing
    CVE ids, insert) plus ingestion logging and stats for the CLI.
    """

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path) if db_path is not None else DB_PATH
        self.init_db()

    def _get_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_connection()
        try:
            conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS signals (
                    id                    TEXT PRIMARY KEY,
                    title                 TEXT NOT NULL,
                    summary               TEXT,
                    full_content          TEXT,
                    signal_category       TEXT NOT NULL DEFAULT 'news',
                    severity              TEXT NOT NULL DEFAULT 'medium',
                    confidence_level      INTEGER NOT NULL DEFAULT {DEFAULT_CONFIDENCE}
                        CHECK (confidence_level BETWEEN 0 AND 100),
                    source_id             TEXT,
                    source_name           TEXT,
                    source_type           TEXT,
                    source_url            TEXT UNIQUE,
                    source_date           TEXT,
                    cve_ids               TEXT,
                    threat_actors         TEXT,
                    malware_families      TEXT,
                    campaign_names        TEXT,
                    target_industries     TEXT,
                    target_regions        TEXT,
                    ioc_types             TEXT,
                    affected_products     TEXT,
                    mitre_tactics         TEXT,
                    mitre_techniques      TEXT,
                    tag_ids               TEXT,
                    motivation            TEXT,
                    attack_phase          TEXT,
                    exploit_type          TEXT,
                    is_fraud_trust_safety INTEGER NOT NULL DEFAULT 0,
                    is_featured           INTEGER NOT NULL DEFAULT 0,
                    is_verified           INTEGER NOT NULL DEFAULT 0,
                    created_at            TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS ingestion_logs (
                    id               TEXT PRIMARY KEY,
                    status           TEXT NOT NULL,
                    signals_found    INTEGER NOT NULL DEFAULT 0,
                    signals_imported INTEGER NOT NULL DEFAULT 0,
                    signals_skipped  INTEGER NOT NULL DEFAULT 0,
                    signals_errored  INTEGER NOT NULL DEFAULT 0,
                    actor_id         TEXT,
                    import_source    TEXT,
                    batch_id         TEXT,
                    started_at       TEXT,
                    completed_at     TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_signals_severity
                    ON signals(severity);

                CREATE INDEX IF NOT EXISTS idx_signals_category
                    ON signals(signal_category);
            """)
            conn.commit()
        finally:
            conn.close()

    def fetch_existing_urls(self) -> set[str]:
        """All source URLs already stored."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT source_url FROM signals WHERE source_url IS NOT NULL"
            ).fetchall()
            return {row[0] for row in rows}
        finally:
            conn.close()

    def fetch_existing_cve_ids(self) -> dict[str, bool]:
        """Every CVE id found in any stored signal, mapped to True."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT cve_ids FROM signals WHERE cve_ids IS NOT NULL"
            ).fetchall()
        finally:
            conn.close()

        cve_map: dict[str, bool] = {}
        for (raw,) in rows:
            for cve_id in json.loads(raw) or []:
                cve_map[cve_id] = True
        return cve_map

    def insert(self, candidate: SignalCandidate) -> str:
        """Insert one signal and return its new id.

        Raises PersistenceError if the database rejects the row.
        """
        data = candidate.model_dump(mode="json")
        if data["confidence_level"] is None:
            data["confidence_level"] = DEFAULT_CONFIDENCE

        signal_id = str(uuid.uuid4())
        columns = ["id", *_SCALAR_COLUMNS, *_ARRAY_COLUMNS, "created_at"]
        values = [
            signal_id,
            *(data[c] for c in _SCALAR_COLUMNS),
            *(json.dumps(data[c]) if data[c] is not None else None for c in _ARRAY_COLUMNS),
            _now().isoformat(),
        ]
        placeholders = ", ".join("?" for _ in columns)

        conn = None
        try:
            conn = self._get_connection()
            conn.execute(
                f"INSERT INTO signals ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()
        return signal_id

    def log_ingestion(
        self,
        summary: ImportSummary,
        *,
        actor_id: str | None = None,
        metadata: ImportMetadata | None = None,
        started_at: datetime | None = None,
    ) -> str:
        """Record one import run and return the log id."""
        errored = len(summary.details) - summary.imported - summary.skipped
        log_id = str(uuid.uuid4())
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO ingestion_logs (
                    id, status, signals_found, signals_imported,
                    signals_skipped, signals_errored, actor_id,
                    import_source, batch_id, started_at, completed_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    log_id,
                    "error" if errored else "success",
                    len(summary.details),
                    summary.imported,
                    summary.skipped,
                    errored,
                    actor_id,
                    metadata.import_source if metadata else None,
                    metadata.batch_id if metadata else None,
                    started_at.isoformat() if started_at else None,
                    _now().isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return log_id

    def list_ingestion_logs(self, limit: int = 20) -> list[IngestionLog]:
        """Most recent import runs first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT id, status, signals_found, signals_imported,
                       signals_skipped, signals_errored, actor_id,
                       import_source, batch_id, started_at, completed_at
                FROM ingestion_logs
                ORDER BY completed_at DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        finally:
            conn.close()

        return [
            IngestionLog(
                log_id=row[0],
                status=row[1],
                signals_found=row[2],
                signals_imported=row[3],
                signals_skipped=row[4],
                signals_errored=row[5],
                actor_id=row[6],
                import_source=row[7],
                batch_id=row[8],
                started_at=_parse_ts(row[9]),
                completed_at=_parse_ts(row[10]),
            )
            for row in rows
        ]

    def get_stats(self) -> dict:
        """Return database statistics."""
        conn = self._get_connection()
        try:
            signal_count = conn.execute("SELECT COUNT(*) FROM signals").fetchone()[0]

            by_severity = dict(
                conn.execute(
                    "SELECT severity, COUNT(*) FROM signals GROUP BY severity"
                ).fetchall()
            )

            by_category = dict(
                conn.execute(
                    "SELECT signal_category, COUNT(*) FROM signals GROUP BY signal_category"
                ).fetchall()
            )

            import_runs = conn.execute(
                "SELECT COUNT(*) FROM ingestion_logs"
            ).fetchone()[0]

            return {
                "signals": signal_count,
                "by_severity": by_severity,
                "by_category": by_category,
                "import_runs": import_runs,
            }
        finally:
            conn.close()
