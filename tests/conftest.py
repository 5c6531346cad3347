"""Pytest configuration providing shared fixtures and collaborator fakes."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable

import pytest

from catalog_sync.config import EnrichmentConfig, StoreConfig, SyncConfig
from catalog_sync.engine import FeedItem, ProductStore
from catalog_sync.errors import DeleteError, EnrichError, UploadError
from catalog_sync.infra import SQLiteManager


@pytest.fixture(scope="session", autouse=True)
def _isolated_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    home = tmp_path_factory.mktemp("catalog-sync-home")
    previous = os.environ.get("CATALOG_SYNC_HOME")
    os.environ["CATALOG_SYNC_HOME"] = str(home)
    yield home
    if previous is None:
        os.environ.pop("CATALOG_SYNC_HOME", None)
    else:
        os.environ["CATALOG_SYNC_HOME"] = previous


class FakeDocumentStore:
    """In-memory stand-in for the dataset document API."""

    def __init__(self, upload_error: bool = False, delete_error: bool = False) -> None:
        self.upload_error = upload_error
        self.delete_error = delete_error
        self.uploads: list[tuple[str, str]] = []
        self.removed: list[str] = []
        self._lock = Lock()

    @property
    def uploaded_names(self) -> list[str]:
        return [name for name, _ in self.uploads]

    def put(self, path: Path) -> str | None:
        if self.upload_error:
            raise UploadError(f"Failed to upload file {path.name}: 500 - boom")
        with self._lock:
            self.uploads.append((path.name, path.read_text(encoding="utf-8")))
        return f"doc-{path.stem}"

    def remove(self, document_id: str) -> None:
        with self._lock:
            self.removed.append(document_id)
        if self.delete_error:
            raise DeleteError(f"Failed to delete document ID {document_id}: 404 - missing")


class FakeEnricher:
    def __init__(self, attributes: dict[str, str] | None = None, error: bool = False) -> None:
        self.attributes = attributes if attributes is not None else {
            "category": "Laptops",
            "specification": "16GB RAM",
        }
        self.error = error
        self.calls: list[str] = []
        self._lock = Lock()

    def enrich(self, url: str) -> dict[str, str]:
        with self._lock:
            self.calls.append(url)
        if self.error:
            raise EnrichError(f"Timed out after 20.0s enriching {url}")
        return dict(self.attributes)


@pytest.fixture
def make_item() -> Callable[..., FeedItem]:
    def _builder(identifier: str = "A", price: str = "10.00", **overrides: Any) -> FeedItem:
        base: dict[str, Any] = {
            "id": identifier,
            "title": f"Product {identifier}",
            "price": Decimal(price),
            "description": "A fine product",
            "link": f"https://shop.example.com/p/{identifier}",
            "image_link": f"https://shop.example.com/img/{identifier}.jpg",
            "brand": "Acme",
            "mpn": f"MPN-{identifier}",
            "gtin": "0001234567890",
            "availability": "in stock",
            "condition": "new",
            "inventory": 3,
        }
        base.update(overrides)
        return FeedItem(**base)

    return _builder


@pytest.fixture
def sync_config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        store=StoreConfig(path=tmp_path / "products.db", backoff_step=0.0),
        enrichment=EnrichmentConfig(enabled=False),
        documents_dir=tmp_path / "product",
        feed_path=tmp_path / "feed.xml",
        show_progress=False,
    )


@pytest.fixture
def storage() -> Iterable[SQLiteManager]:
    manager = SQLiteManager()
    yield manager
    manager.close_all()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def store(storage: SQLiteManager, tmp_path: Path, sleeps: list[float]) -> Iterable[ProductStore]:
    product_store = ProductStore(storage, tmp_path / "products.db", sleep=sleeps.append).open()
    yield product_store
    product_store.close()


@pytest.fixture
def docstore() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def enricher() -> FakeEnricher:
    return FakeEnricher()


FEED_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss xmlns:g="http://base.google.com/ns/1.0" version="2.0">
  <channel>
    <title>Shop</title>
    {items}
  </channel>
</rss>
"""


@pytest.fixture
def build_feed() -> Callable[[Iterable[dict[str, str]]], str]:
    """Render an RSS shop feed from dicts of tag -> text (``g:`` namespaced)."""

    def _render(entries: Iterable[dict[str, str]]) -> str:
        rendered = []
        for entry in entries:
            fields = "".join(f"<g:{tag}>{value}</g:{tag}>" for tag, value in entry.items())
            rendered.append(f"<item>{fields}</item>")
        return FEED_TEMPLATE.format(items="\n    ".join(rendered))

    return _render
