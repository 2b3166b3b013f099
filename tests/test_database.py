"""Tests for the database module."""

import sqlite3
from datetime import datetime, timezone

import pytest

from signalwatch.database import SignalStore
from signalwatch.errors import PersistenceError
from signalwatch.models import ImportResult, ImportSummary
from signalwatch.schema import ImportMetadata, SignalCandidate


@pytest.fixture
def sample_signal():
    return SignalCandidate(
        title="#StopRansomware: Royal Ransomware",
        signal_category="advisory",
        severity="high",
        source_url="https://www.cisa.gov/cybersecurity-advisories/aa23-061a",
        source_date="2023-03-02T00:00:00Z",
        cve_ids=["CVE-2023-0001", "CVE-2023-0002"],
        threat_actors=["Royal"],
        is_verified=True,
    )


class TestDefaultPath:
    def test_uses_configured_db_path(self, tmp_path, monkeypatch):
        db_path = tmp_path / "nested" / "signals.db"
        monkeypatch.setattr("signalwatch.database.DB_PATH", db_path)
        store = SignalStore()
        assert store.db_path == db_path
        assert db_path.exists()


class TestInsert:
    def test_returns_id(self, store, sample_signal):
        signal_id = store.insert(sample_signal)
        assert len(signal_id) == 36

    def test_missing_confidence_uses_column_default(self, store):
        store.insert(SignalCandidate(title="No confidence supplied here"))
        conn = store._get_connection()
        try:
            row = conn.execute("SELECT confidence_level FROM signals").fetchone()
        finally:
            conn.close()
        assert row[0] == 50

    def test_duplicate_url_raises(self, store, sample_signal):
        store.insert(sample_signal)
        with pytest.raises(PersistenceError) as exc_info:
            store.insert(sample_signal)
        assert "IntegrityError" in str(exc_info.value)

    def test_connection_failure_raises(self, store, sample_signal, monkeypatch):
        def refuse():
            raise sqlite3.OperationalError("unable to open database file")

        monkeypatch.setattr(store, "_get_connection", refuse)
        with pytest.raises(PersistenceError) as exc_info:
            store.insert(sample_signal)
        assert "OperationalError" in str(exc_info.value)

    def test_signals_without_url_coexist(self, store):
        store.insert(SignalCandidate(title="First signal without a link"))
        store.insert(SignalCandidate(title="Second signal without a link"))
        assert store.get_stats()["signals"] == 2


class TestExistingKeys:
    def test_empty_db(self, store):
        assert store.fetch_existing_urls() == set()
        assert store.fetch_existing_cve_ids() == {}

    def test_urls(self, store, sample_signal):
        store.insert(sample_signal)
        store.insert(SignalCandidate(title="Signal without a source link"))
        assert store.fetch_existing_urls() == {
            "https://www.cisa.gov/cybersecurity-advisories/aa23-061a"
        }

    def test_cve_ids_flattened(self, store, sample_signal):
        store.insert(sample_signal)
        store.insert(
            SignalCandidate(title="Another CVE roundup entry", cve_ids=["CVE-2023-0002", "CVE-2023-0003"])
        )
        assert store.fetch_existing_cve_ids() == {
            "CVE-2023-0001": True,
            "CVE-2023-0002": True,
            "CVE-2023-0003": True,
        }


class TestIngestionLogs:
    def test_log_and_list(self, store):
        summary = ImportSummary()
        summary.record(ImportResult("Signal that made it in", "imported"))
        summary.record(ImportResult("Signal already present", "skipped", "duplicate URL"))
        summary.record(ImportResult("Signal that failed", "error", "failed"))

        store.log_ingestion(
            summary,
            actor_id="analyst-1",
            metadata=ImportMetadata(import_source="feed-export", batch_id="b-1"),
            started_at=datetime(2026, 2, 10, tzinfo=timezone.utc),
        )

        logs = store.list_ingestion_logs()
        assert len(logs) == 1
        log = logs[0]
        assert log.status == "error"
        assert (log.signals_found, log.signals_imported, log.signals_skipped, log.signals_errored) == (3, 1, 1, 1)
        assert log.import_source == "feed-export"
        assert log.started_at == datetime(2026, 2, 10, tzinfo=timezone.utc)
        assert log.completed_at is not None

    def test_success_status(self, store):
        summary = ImportSummary()
        summary.record(ImportResult("Signal that made it in", "imported"))
        store.log_ingestion(summary)
        assert store.list_ingestion_logs()[0].status == "success"

    def test_limit(self, store):
        for _ in range(3):
            store.log_ingestion(ImportSummary())
        assert len(store.list_ingestion_logs(limit=2)) == 2


class TestGetStats:
    def test_empty_db(self, store):
        stats = store.get_stats()
        assert stats["signals"] == 0
        assert stats["import_runs"] == 0

    def test_with_data(self, store, sample_signal):
        store.insert(sample_signal)
        store.insert(SignalCandidate(title="Plain news item for stats"))

        stats = store.get_stats()
        assert stats["signals"] == 2
        assert stats["by_severity"] == {"high": 1, "medium": 1}
        assert stats["by_category"] == {"advisory": 1, "news": 1}
