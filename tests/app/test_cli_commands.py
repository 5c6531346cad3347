from __future__ import annotations

from decimal import Decimal

import pytest
from typer.testing import CliRunner

from catalog_sync.app import AppState, app
from catalog_sync.engine import ItemOutcome, OutcomeStatus, ProductStatus, ProductStore
from catalog_sync.errors import FetchError, RunAbortedError
from catalog_sync.infra import SQLiteManager
from catalog_sync.orchestrator import RunSummary


class StubCoordinator:
    def __init__(self, summary: RunSummary | None = None, error: Exception | None = None) -> None:
        self.summary = summary
        self.error = error
        self.calls: list[dict] = []
        self.closed = False

    def run(self, feed_file=None, progress=None) -> RunSummary:
        self.calls.append({"feed_file": feed_file, "progress": progress})
        if self.error is not None:
            raise self.error
        return self.summary

    def close(self) -> None:
        self.closed = True


class StubState(AppState):
    def __init__(self, config, storage, coordinator: StubCoordinator) -> None:
        super().__init__(repository=None, config=config, storage=storage)
        self.stub = coordinator
        self.requested: list[tuple[bool, int | None]] = []

    def coordinator(self, enrich: bool = True, workers: int | None = None):
        self.requested.append((enrich, workers))
        return self.stub


@pytest.fixture
def cli_storage():
    manager = SQLiteManager()
    yield manager
    manager.close_all()


def _install(monkeypatch, state) -> None:
    monkeypatch.setattr("catalog_sync.app.build_state", lambda verbose: state)


def test_cli_run_prints_summary(monkeypatch, sync_config, cli_storage) -> None:
    summary = RunSummary(
        total=3,
        published=1,
        unchanged=1,
        failed=1,
        deleted=2,
        failures=[ItemOutcome("C", OutcomeStatus.FAILED, stage="upload", reason="500 - boom")],
    )
    state = StubState(sync_config, cli_storage, StubCoordinator(summary))
    _install(monkeypatch, state)

    result = CliRunner().invoke(app, ["run", "--no-enrich", "--workers", "2"])

    assert result.exit_code == 0, result.stdout
    assert "Sync result" in result.stdout
    assert "Failed items" in result.stdout
    assert "500 - boom" in result.stdout
    assert state.requested == [(False, 2)]
    assert state.stub.closed


def test_cli_run_quiet_with_feed_file(monkeypatch, sync_config, cli_storage, tmp_path) -> None:
    feed = tmp_path / "feed.xml"
    feed.write_text("<rss/>", encoding="utf-8")
    state = StubState(sync_config, cli_storage, StubCoordinator(RunSummary(total=1, published=1)))
    _install(monkeypatch, state)

    result = CliRunner().invoke(app, ["run", "--quiet", "--feed-file", str(feed)])

    assert result.exit_code == 0, result.stdout
    assert "published 1, unchanged 0, skipped 0, failed 0, removed 0" in result.stdout
    assert state.stub.calls[0]["feed_file"] == feed
    assert state.requested == [(True, None)]


def test_cli_run_abort_exits_non_zero(monkeypatch, sync_config, cli_storage) -> None:
    error = RunAbortedError("fetch", FetchError("Bad response downloading feed: 503"))
    state = StubState(sync_config, cli_storage, StubCoordinator(error=error))
    _install(monkeypatch, state)

    result = CliRunner().invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Run aborted" in result.stdout
    assert state.stub.closed


def test_cli_status_and_history(monkeypatch, sync_config, cli_storage) -> None:
    seed = ProductStore(cli_storage, sync_config.store.path).open()
    seed.insert("A", Decimal("10.00"), "MPN-A", ProductStatus.NEW)
    seed.insert("C", Decimal("5.00"), "MPN-C", ProductStatus.NEW)
    seed.update_status_and_price("C", ProductStatus.UPDATED, Decimal("7.50"))
    seed.insert("C", Decimal("7.50"), "MPN-C", ProductStatus.NEW)
    seed.close()
    state = StubState(sync_config, cli_storage, StubCoordinator())
    _install(monkeypatch, state)
    runner = CliRunner()

    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0, result.stdout
    assert "Products by status" in result.stdout
    assert "MPN-A" in result.stdout

    result = runner.invoke(app, ["status", "--status", "updated"])
    assert result.exit_code == 0, result.stdout
    assert "MPN-A" not in result.stdout

    result = runner.invoke(app, ["history", "C"])
    assert result.exit_code == 0, result.stdout
    assert "price 7.50" in result.stdout
    assert "5.00" in result.stdout

    result = runner.invoke(app, ["history", "missing"])
    assert result.exit_code == 1


def test_cli_log_reports_empty_log(monkeypatch, sync_config, cli_storage, tmp_path) -> None:
    _install(monkeypatch, StubState(sync_config, cli_storage, StubCoordinator()))
    monkeypatch.setattr(
        "catalog_sync.app.log_paths",
        lambda: {"sync": tmp_path / "sync.log", "error": tmp_path / "error.log"},
    )
    (tmp_path / "error.log").write_text('{"message": "item_failed"}\n', encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(app, ["log"])
    assert result.exit_code == 0, result.stdout
    assert "No log entries" in result.stdout

    result = runner.invoke(app, ["log", "--errors", "--lines", "5"])
    assert result.exit_code == 0, result.stdout
    assert "item_failed" in result.stdout
