"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from signalwatch.cli import cli
from signalwatch.database import SignalStore


@pytest.fixture(autouse=True)
def tmp_db(tmp_path, monkeypatch):
    """Use a temporary database and a known actor for each test."""
    db_path = tmp_path / "test.db"
    monkeypatch.setattr("signalwatch.database.DB_PATH", db_path)
    monkeypatch.setenv("SIGNALWATCH_ACTOR", "analyst-1")
    return db_path


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write_batch(tmp_path):
    def _write(payload, name="batch.json"):
        path = tmp_path / name
        path.write_text(json.dumps(payload))
        return str(path)

    return _write


@pytest.fixture
def batch(make_signal):
    return {
        "metadata": {"import_source": "cli-test"},
        "signals": [
            make_signal(title="Advisory on x.com article", source_url="https://x.com/a"),
            make_signal(title="Brand new vulnerability", cve_ids=["CVE-2099-0001"]),
        ],
    }


class TestImport:
    def test_json_output(self, runner, write_batch, batch):
        result = runner.invoke(cli, ["import", write_batch(batch), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["imported"] == 2
        assert data["skipped"] == 0
        assert data["errors"] == []
        assert [d["status"] for d in data["details"]] == ["imported", "imported"]

    def test_second_run_skips(self, runner, write_batch, batch):
        path = write_batch(batch)
        runner.invoke(cli, ["import", path])
        result = runner.invoke(cli, ["import", path, "--json"])
        data = json.loads(result.stdout)
        assert data["imported"] == 0
        assert data["skipped"] == 2
        assert data["details"][0]["error"] == "duplicate URL"
        assert data["details"][1]["error"] == "duplicate CVE"

    def test_table_output(self, runner, write_batch, batch):
        result = runner.invoke(cli, ["import", write_batch(batch)])
        assert result.exit_code == 0
        assert "2 imported, 0 skipped, 0 errors." in result.output

    def test_no_skip_duplicates(self, runner, write_batch, make_signal):
        path = write_batch({"signals": [make_signal(cve_ids=["CVE-2026-0001"])]})
        runner.invoke(cli, ["import", path])
        result = runner.invoke(cli, ["import", path, "--no-skip-duplicates", "--json"])
        assert json.loads(result.stdout)["imported"] == 1

    def test_invalid_batch_rejected(self, runner, write_batch, make_signal, tmp_db):
        path = write_batch({"signals": [make_signal(), make_signal(severity="urgent")]})
        result = runner.invoke(cli, ["import", path, "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["imported"] == 0
        assert data["details"] == []
        assert data["errors"][0].startswith("signals.1.severity: ")
        assert SignalStore(tmp_db).get_stats()["signals"] == 0

    def test_malformed_json_rejected(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{oops")
        result = runner.invoke(cli, ["import", str(path)])
        assert result.exit_code == 1
        assert "invalid JSON" in result.output

    def test_no_actor(self, runner, write_batch, batch, monkeypatch):
        monkeypatch.delenv("SIGNALWATCH_ACTOR")
        result = runner.invoke(cli, ["import", write_batch(batch), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["errors"] == [
            "Session expired. Please log in and try again."
        ]

    def test_actor_option(self, runner, write_batch, batch, monkeypatch, tmp_db):
        monkeypatch.delenv("SIGNALWATCH_ACTOR")
        result = runner.invoke(cli, ["import", write_batch(batch), "--actor", "lead-2"])
        assert result.exit_code == 0
        assert SignalStore(tmp_db).list_ingestion_logs()[0].actor_id == "lead-2"

    def test_rate_limited(self, runner, write_batch, make_signal):
        path = write_batch({"signals": []})
        for _ in range(5):
            assert runner.invoke(cli, ["import", path]).exit_code == 0
        result = runner.invoke(cli, ["import", path])
        assert result.exit_code == 1
        assert "Rate limit exceeded" in result.output


class TestValidate:
    def test_valid(self, runner, write_batch, batch, tmp_db):
        result = runner.invoke(cli, ["validate", write_batch(batch), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"valid": True, "count": 2, "errors": []}
        assert SignalStore(tmp_db).get_stats()["signals"] == 0

    def test_invalid(self, runner, write_batch, make_signal):
        path = write_batch({"signals": [make_signal(title="short")]})
        result = runner.invoke(cli, ["validate", path, "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert data["errors"][0].startswith("signals.0.title: ")


class TestStatsAndHistory:
    def test_empty_stats(self, runner):
        result = runner.invoke(cli, ["stats"])
        assert result.exit_code == 0
        assert "Database is empty" in result.output

    def test_stats_after_import(self, runner, write_batch, batch):
        runner.invoke(cli, ["import", write_batch(batch)])
        result = runner.invoke(cli, ["stats"])
        assert result.exit_code == 0
        assert "Signals" in result.output

    def test_empty_history(self, runner):
        result = runner.invoke(cli, ["history"])
        assert "No imports recorded yet" in result.output

    def test_history_after_import(self, runner, write_batch, batch):
        runner.invoke(cli, ["import", write_batch(batch)])
        result = runner.invoke(cli, ["history"])
        assert result.exit_code == 0
        assert "Import History" in result.output
