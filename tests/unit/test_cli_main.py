"""Tests for context_anchor.cli.main — CLI commands via Click test runner."""
from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from context_anchor.cli.main import cli
from context_anchor.config import EngineSettings
from context_anchor.engine import ContextEngine


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "anchors.db"


@pytest.fixture()
def anchor_id(db_file: Path) -> str:
    engine = ContextEngine.from_settings(EngineSettings(database_path=str(db_file)))
    try:
        resolution = engine.resolve({"project_path": "/srv/app"}).value
        assert resolution is not None and resolution.pending_anchor is not None
        anchor = engine.create_anchor(resolution.pending_anchor).value
        assert anchor is not None
        return anchor.anchor_id
    finally:
        engine.close()


def _invoke(runner: CliRunner, db_file: Path, *args: str) -> Result:
    return runner.invoke(cli, ["--db", str(db_file), *args])


# ---------------------------------------------------------------------------
# Root CLI
# ---------------------------------------------------------------------------


class TestRootCLI:
    def test_help_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "anchor" in result.output

    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "context-anchor" in result.output.lower()


# ---------------------------------------------------------------------------
# anchor
# ---------------------------------------------------------------------------


class TestAnchorCommands:
    def test_resolve_unknown_hints(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "anchor", "resolve", "-p", "/srv/app")
        assert result.exit_code == 0
        assert "create_new" in result.output
        assert "No anchor matches." in result.output

    def test_resolve_without_hints_fails(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "anchor", "resolve")
        assert result.exit_code == 1
        assert "insufficient_data" in result.output

    def test_create_then_resolve(self, runner: CliRunner, db_file: Path) -> None:
        created = _invoke(runner, db_file, "anchor", "create", "-p", "/srv/app", "-w", "main")
        assert created.exit_code == 0
        assert "Created" in created.output

        resolved = _invoke(runner, db_file, "anchor", "resolve", "-p", "/srv/app", "-w", "main")
        assert resolved.exit_code == 0
        assert "bind_existing" in resolved.output

    def test_create_existing_reports_it(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        result = _invoke(runner, db_file, "anchor", "create", "-p", "/srv/app")
        assert result.exit_code == 0
        assert "Anchor already exists" in result.output
        assert anchor_id in result.output

    def test_create_rejects_bad_metadata(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "anchor", "create", "-p", "/a", "-m", "[1, 2]")
        assert result.exit_code == 1
        assert "JSON object" in result.output

    def test_show(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(runner, db_file, "anchor", "show", anchor_id)
        assert result.exit_code == 0
        assert "Trust score" in result.output
        assert "50.00" in result.output

    def test_show_unknown(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "anchor", "show", "nope")
        assert result.exit_code == 1
        assert "not_found" in result.output

    def test_retire(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(runner, db_file, "anchor", "retire", anchor_id, "-r", "merged")
        assert result.exit_code == 0
        assert "Retired" in result.output
        assert _invoke(runner, db_file, "anchor", "show", anchor_id).exit_code == 1


# ---------------------------------------------------------------------------
# session
# ---------------------------------------------------------------------------


class TestSessionCommands:
    def test_bind_and_unbind_evolves_trust(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        bound = _invoke(runner, db_file, "session", "bind", anchor_id, "s-1", "--platform", "cli")
        assert bound.exit_code == 0
        assert "Bound" in bound.output

        metrics = json.dumps({"interactions": 12, "successes": 9})
        unbound = _invoke(runner, db_file, "session", "unbind", "s-1", "--metrics", metrics)
        assert unbound.exit_code == 0
        assert "Unbound" in unbound.output
        assert "level 4" in unbound.output

    def test_unbind_unknown_session(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "session", "unbind", "ghost")
        assert result.exit_code == 1
        assert "not_found" in result.output

    def test_unbind_invalid_json(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        _invoke(runner, db_file, "session", "bind", anchor_id, "s-1")
        result = _invoke(runner, db_file, "session", "unbind", "s-1", "--metrics", "{oops")
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_unbind_inconsistent_metrics(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        _invoke(runner, db_file, "session", "bind", anchor_id, "s-1")
        metrics = json.dumps({"interactions": 2, "successes": 5})
        result = _invoke(runner, db_file, "session", "unbind", "s-1", "--metrics", metrics)
        assert result.exit_code == 1
        assert "invalid input" in result.output

    def test_bind_conflict(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        _invoke(runner, db_file, "session", "bind", anchor_id, "s-1")
        _invoke(runner, db_file, "anchor", "create", "-p", "/srv/other")
        engine = ContextEngine.from_settings(EngineSettings(database_path=str(db_file)))
        try:
            other = engine.resolve({"project_path": "/srv/other"}).value
            assert other is not None and other.anchor is not None
            other_id = other.anchor.anchor_id
        finally:
            engine.close()
        result = _invoke(runner, db_file, "session", "bind", other_id, "s-1")
        assert result.exit_code == 1
        assert "invariant_violation" in result.output


# ---------------------------------------------------------------------------
# exposure / behavior / trust / archetype
# ---------------------------------------------------------------------------


class TestAssessmentCommands:
    def test_exposure_log(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(
            runner, db_file, "exposure", "log", anchor_id, "github.com", "--count", "3"
        )
        assert result.exit_code == 0
        assert "Logged" in result.output

    def test_exposure_log_rejects_zero_count(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        result = _invoke(runner, db_file, "exposure", "log", anchor_id, "x.com", "--count", "0")
        assert result.exit_code != 0

    def test_behavior_assess(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(runner, db_file, "behavior", "assess", anchor_id)
        assert result.exit_code == 0
        assert "No red flags." in result.output

    def test_trust_evolve_skips_without_evidence(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        result = _invoke(runner, db_file, "trust", "evolve", anchor_id)
        assert result.exit_code == 0
        assert "Skipped" in result.output

    def test_trust_evolve_unknown_anchor(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "trust", "evolve", "ghost")
        assert result.exit_code == 1
        assert "not_found" in result.output

    def test_archetype_classify(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(runner, db_file, "archetype", "classify", anchor_id)
        assert result.exit_code == 0
        assert "Archetype:" in result.output
        assert "archetype_match" in result.output


# ---------------------------------------------------------------------------
# ledger
# ---------------------------------------------------------------------------


class TestLedgerCommands:
    def test_verify_intact_chain(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(runner, db_file, "ledger", "verify", anchor_id)
        assert result.exit_code == 0
        assert "Chain intact" in result.output

    def test_verify_tampered_chain(
        self, runner: CliRunner, db_file: Path, anchor_id: str
    ) -> None:
        conn = sqlite3.connect(db_file)
        try:
            conn.execute(
                "UPDATE ledger_entries SET payload = ? WHERE anchor_id = ? AND sequence = 0",
                ('{"forged": true}', anchor_id),
            )
            conn.commit()
        finally:
            conn.close()
        result = _invoke(runner, db_file, "ledger", "verify", anchor_id)
        assert result.exit_code == 1
        assert "Chain broken" in result.output

    def test_show_entries(self, runner: CliRunner, db_file: Path, anchor_id: str) -> None:
        result = _invoke(runner, db_file, "ledger", "show", anchor_id)
        assert result.exit_code == 0
        assert "created" in result.output

    def test_show_empty(self, runner: CliRunner, db_file: Path) -> None:
        result = _invoke(runner, db_file, "ledger", "show", "ghost")
        assert result.exit_code == 0
        assert "No ledger entries." in result.output
