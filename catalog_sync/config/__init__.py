"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DocumentStoreConfig,
    EnrichmentConfig,
    FeedConfig,
    ScheduleConfig,
    ScheduleType,
    StoreConfig,
    SyncConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DocumentStoreConfig",
    "EnrichmentConfig",
    "FeedConfig",
    "ScheduleConfig",
    "ScheduleType",
    "StoreConfig",
    "SyncConfig",
]
