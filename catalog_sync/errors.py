"""Exception hierarchy shared by the sync engine and its collaborators."""

from __future__ import annotations


class CatalogSyncError(Exception):
    """Base class for every error raised by catalog-sync."""


class FetchError(CatalogSyncError):
    """The remote feed could not be downloaded."""


class ParseError(CatalogSyncError):
    """The downloaded feed is not a readable item feed."""


class StoreError(CatalogSyncError):
    """A persisted store operation failed (after retries, where applicable)."""


class DuplicateKeyError(StoreError):
    """An insert targeted an identifier that already has a live record."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Product {identifier!r} already exists")
        self.identifier = identifier


class EnrichError(CatalogSyncError):
    """The product page could not be scraped for extra attributes."""


class UploadError(CatalogSyncError):
    """The document store rejected or never received a document."""


class DeleteError(CatalogSyncError):
    """The document store did not confirm a document deletion."""


class RunAbortedError(CatalogSyncError):
    """A fatal failure stopped the run before any item was reconciled."""

    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(f"Run aborted during {stage}: {cause}")
        self.stage = stage
        self.cause = cause


__all__ = [
    "CatalogSyncError",
    "DeleteError",
    "DuplicateKeyError",
    "EnrichError",
    "FetchError",
    "ParseError",
    "RunAbortedError",
    "StoreError",
    "UploadError",
]
