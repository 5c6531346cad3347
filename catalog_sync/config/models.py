"""Pydantic models used across the catalog-sync configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class ScheduleType(str, Enum):
    """Scheduler modes for periodic runs."""

    CRON = "cron"
    INTERVAL = "interval"


class ScheduleConfig(BaseModel):
    """When the `schedule` command should trigger a run."""

    type: ScheduleType = Field(default=ScheduleType.INTERVAL)
    value: Any = Field(
        default=3600,
        description="Cron expression or interval seconds, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        return self


class FeedConfig(BaseModel):
    """Location and credentials of the remote product feed."""

    url: str = ""
    username: str = ""
    password: str = ""
    timeout: float = 10.0

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("feed timeout must be > 0")
        return value


class StoreConfig(BaseModel):
    """SQLite product store settings."""

    path: Path = Field(default=Path("data/products.db"))
    busy_timeout_ms: int = 5000
    max_retries: int = 5
    backoff_step: float = 0.1

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_retry(self) -> "StoreConfig":
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.busy_timeout_ms < 0 or self.backoff_step < 0:
            raise ValueError("busy_timeout_ms and backoff_step must be >= 0")
        return self


class DocumentStoreConfig(BaseModel):
    """Dataset document API the formatted products are published to."""

    base_url: str = "https://b2b.my-buddy.ai/v1"
    dataset_id: str = ""
    api_token: str = ""
    timeout: float = 30.0
    indexing_technique: str = "high_quality"
    segment_separator: str = "###"
    segment_max_tokens: int = 1000

    def processing_rules(self) -> dict[str, Any]:
        """Processing payload sent alongside every uploaded file."""

        return {
            "indexing_technique": self.indexing_technique,
            "process_rule": {
                "rules": {
                    "pre_processing_rules": [
                        {"id": "remove_extra_spaces", "enabled": True},
                        {"id": "remove_urls_emails", "enabled": False},
                    ],
                    "segmentation": {
                        "separator": self.segment_separator,
                        "max_tokens": self.segment_max_tokens,
                    },
                },
                "mode": "custom",
            },
        }


class EnrichmentConfig(BaseModel):
    """Headless browser scraping of product pages."""

    enabled: bool = True
    timeout: float = 20.0
    headless: bool = True
    specification_selector: str = ".react-tabs__tab-panel"
    category_selector: str = ".breadcrumb-item:last-child"


class SyncConfig(BaseModel):
    """Top level configuration of a sync run."""

    feed: FeedConfig = Field(default_factory=FeedConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    document_store: DocumentStoreConfig = Field(default_factory=DocumentStoreConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    worker_count: int = 5
    documents_dir: Path = Field(default=Path("data/product"))
    feed_path: Path = Field(default=Path("data/feed.xml"))
    show_progress: bool = True

    @field_validator("documents_dir", "feed_path", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("worker_count")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("worker_count must be >= 1")
        return value

    def resolve_paths(self, base_dir: Path) -> "SyncConfig":
        """Return a copy whose relative paths are anchored at ``base_dir``."""

        def _anchor(path: Path) -> Path:
            return path if path.is_absolute() else (base_dir / path).resolve()

        return self.model_copy(
            update={
                "documents_dir": _anchor(self.documents_dir),
                "feed_path": _anchor(self.feed_path),
                "store": self.store.model_copy(update={"path": _anchor(self.store.path)}),
            }
        )


__all__ = [
    "DocumentStoreConfig",
    "EnrichmentConfig",
    "FeedConfig",
    "ScheduleConfig",
    "ScheduleType",
    "StoreConfig",
    "SyncConfig",
]
