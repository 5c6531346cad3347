"""Configuration loading helpers for catalog-sync."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import SyncConfig

CONFIG_FILENAME = "sync_config.yaml"
ENV_HOME = "CATALOG_SYNC_HOME"
ENV_FEED_PASSWORD = "CATALOG_SYNC_FEED_PASSWORD"
ENV_API_TOKEN = "CATALOG_SYNC_API_TOKEN"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    documents_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(ENV_HOME)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.documents_dir = (self.data_dir / "product").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.documents_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: SyncConfig | None = None

    def load(self) -> SyncConfig:
        """Load the stored config (writing defaults on first use) with paths resolved."""

        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            config = SyncConfig.model_validate(_read_file(path))
        else:
            config = SyncConfig()
            self.save(config)
        config = self._apply_environment(config).resolve_paths(self.locator.project_root)
        self._cache = config
        return config

    def save(self, config: SyncConfig) -> Path:
        path = self.locator.config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._cache = None
        return path

    @staticmethod
    def _apply_environment(config: SyncConfig) -> SyncConfig:
        password = os.environ.get(ENV_FEED_PASSWORD)
        token = os.environ.get(ENV_API_TOKEN)
        if password:
            config = config.model_copy(
                update={"feed": config.feed.model_copy(update={"password": password})}
            )
        if token:
            config = config.model_copy(
                update={
                    "document_store": config.document_store.model_copy(
                        update={"api_token": token}
                    )
                }
            )
        return config


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_FILENAME"]
