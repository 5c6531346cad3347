from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from catalog_sync.config import ConfigLocator, ConfigRepository, SyncConfig


def test_config_locator_uses_env_and_creates_directories(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CATALOG_SYNC_HOME", str(tmp_path))
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    assert locator.config_path() == tmp_path.resolve() / "data" / "sync_config.yaml"
    for path in (locator.data_dir, locator.documents_dir, locator.logs_dir):
        assert path.exists()


def test_repository_writes_defaults_on_first_load(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CATALOG_SYNC_HOME", str(tmp_path))
    repo = ConfigRepository()
    config = repo.load()

    assert repo.locator.config_path().exists()
    assert config.worker_count == 5
    assert config.store.path == tmp_path.resolve() / "data" / "products.db"
    assert config.documents_dir == tmp_path.resolve() / "data" / "product"
    assert repo.load() is config


def test_repository_reads_yaml_and_env_secrets(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CATALOG_SYNC_HOME", str(tmp_path))
    monkeypatch.setenv("CATALOG_SYNC_FEED_PASSWORD", "feed-secret")
    monkeypatch.setenv("CATALOG_SYNC_API_TOKEN", "api-secret")
    locator = ConfigLocator()
    locator.config_path().write_text(
        yaml.safe_dump(
            {
                "feed": {"url": "https://feeds.example.com/p.xml", "username": "shop"},
                "document_store": {"dataset_id": "ds-9"},
                "worker_count": 2,
                "schedule": {"type": "cron", "value": "0 * * * *"},
            }
        ),
        encoding="utf-8",
    )

    config = ConfigRepository(locator).load()

    assert config.feed.username == "shop"
    assert config.feed.password == "feed-secret"
    assert config.document_store.api_token == "api-secret"
    assert config.document_store.dataset_id == "ds-9"
    assert config.worker_count == 2
    assert config.schedule.value == "0 * * * *"


def test_repository_save_roundtrip(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOG_SYNC_HOME", str(tmp_path))
    repo = ConfigRepository()
    repo.save(SyncConfig(worker_count=7, show_progress=False))
    loaded = repo.load()
    assert loaded.worker_count == 7
    assert loaded.show_progress is False


def test_repository_rejects_non_mapping(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOG_SYNC_HOME", str(tmp_path))
    locator = ConfigLocator()
    locator.config_path().write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        ConfigRepository(locator).load()
