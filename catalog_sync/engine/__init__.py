"""Engine components: fetch → parse → classify → store → publish."""

from .classifier import Classification, SyncDecision, classify
from .docstore import DocumentStore, DocumentStoreClient
from .document import DocumentWriter, FormattedDocument, format_document
from .enricher import Enricher, PageEnricher
from .feed import FeedItem, FeedParser
from .fetcher import FeedFetcher
from .store import ProductRecord, ProductStatus, ProductStore
from .sync import ItemOutcome, OutcomeStatus, SyncOrchestrator
from .thread_pool import WorkerPool

__all__ = [
    "Classification",
    "DocumentStore",
    "DocumentStoreClient",
    "DocumentWriter",
    "Enricher",
    "FeedFetcher",
    "FeedItem",
    "FeedParser",
    "FormattedDocument",
    "ItemOutcome",
    "OutcomeStatus",
    "PageEnricher",
    "ProductRecord",
    "ProductStatus",
    "ProductStore",
    "SyncDecision",
    "SyncOrchestrator",
    "WorkerPool",
    "classify",
    "format_document",
]
