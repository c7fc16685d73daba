"""Tests for the knotsync CLI (Typer CliRunner)."""

import asyncio
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from knotsync import __version__
from knotsync.cli.app import app
from knotsync.models.base import EntityKind
from knotsync.models.drafts import KnotDraft, SpotDraft
from knotsync.session import SessionBinding
from knotsync.store.writes import ArrayUnion, Write

runner = CliRunner()


@pytest.fixture(autouse=True)
def _test_app_id(monkeypatch):
    monkeypatch.setenv("KNOTSYNC_APP_ID", "test-app")
    monkeypatch.setenv("KNOTSYNC_LOG_LEVEL", "WARNING")


def _seed(engine, store, paths, *, broken: bool):
    async def seed():
        session = SessionBinding().bind("ana", username="ana")
        spot = (await engine.create_spot(session, SpotDraft(tag="x", date="2026-07-01", time="10:00"))).unwrap()
        knot = (
            await engine.create_knot(session, KnotDraft(tag="t", start_date="2026-07-01", end_date="2026-07-01"))
        ).unwrap()
        await engine.add_spot_to_knot(session, spot.id, knot.id)
        if broken:
            spots = paths.private("ana", EntityKind.SPOT)
            await store.commit([Write.update(spots, spot.id, {"knotIds": ArrayUnion(["ghost"])})])
        return spot

    return asyncio.run(seed())


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"knotsync {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "audit" in result.output
        assert "config" in result.output


class TestConfigShow:
    def test_env_format(self):
        result = runner.invoke(app, ["config", "show", "--format", "env"])
        assert result.exit_code == 0
        assert "KNOTSYNC_APP_ID=test-app" in result.output
        assert "KNOTSYNC_STORE_BACKEND=memory" in result.output

    def test_json_format(self):
        result = runner.invoke(app, ["config", "show", "-f", "json"])
        assert result.exit_code == 0
        assert '"max_batch_size": 500' in result.output

    def test_table_format(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "app_id" in result.output

    def test_invalid_config_exits_2(self, monkeypatch):
        monkeypatch.setenv("KNOTSYNC_STORE_BACKEND", "firestore")
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 2


class TestAudit:
    def test_clean_user(self, engine, store, paths):
        _seed(engine, store, paths, broken=False)
        with patch("knotsync.cli.audit.open_store", return_value=store):
            result = runner.invoke(app, ["audit", "ana"])
        assert result.exit_code == 0
        assert "0 finding(s)" in result.output

    def test_findings_exit_1(self, engine, store, paths):
        _seed(engine, store, paths, broken=True)
        with patch("knotsync.cli.audit.open_store", return_value=store):
            result = runner.invoke(app, ["audit", "ana", "--json"])
        assert result.exit_code == 1
        assert "dangling_reference" in result.output
        assert '"repaired_writes": 0' in result.output

    def test_repair(self, engine, store, paths):
        spot = _seed(engine, store, paths, broken=True)
        with patch("knotsync.cli.audit.open_store", return_value=store):
            result = runner.invoke(app, ["audit", "ana", "--repair"])
        assert result.exit_code == 0
        assert "Repaired" in result.output
        doc = asyncio.run(store.get(paths.private("ana", EntityKind.SPOT), spot.id))
        assert "ghost" not in doc["knotIds"]

    def test_store_failure_exits_1(self, store):
        store.fail_next_read()
        with patch("knotsync.cli.audit.open_store", return_value=store):
            result = runner.invoke(app, ["audit", "ana"])
        assert result.exit_code == 1
