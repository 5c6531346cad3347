"""Per-item synchronisation between the feed, the product store and the document store."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Dict, Iterator

import structlog

from ..errors import DeleteError, DuplicateKeyError, EnrichError, StoreError, UploadError
from .classifier import Classification, SyncDecision, classify
from .docstore import DocumentStore
from .document import DocumentWriter, format_document
from .enricher import Enricher
from .feed import FeedItem
from .store import ProductStatus, ProductStore


class OutcomeStatus(str, Enum):
    PUBLISHED = "published"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class ItemOutcome:
    """Result of processing one feed item."""

    identifier: str
    status: OutcomeStatus
    decision: SyncDecision | None = None
    stage: str | None = None
    reason: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED


class KeyedLock:
    """One lock per key, created on demand.

    Locks are never pruned; an instance lives for one run, so it holds at
    most one lock per identifier in that run's feed.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, Lock] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, Lock())
        with lock:
            yield


class SyncOrchestrator:
    """Apply the classifier's decision for an item.

    The whole lookup -> mutate -> publish sequence of an identifier runs under
    that identifier's lock, so concurrent workers never act on a stale lookup.
    No exception escapes :meth:`process`; failures become an :class:`ItemOutcome`
    carrying the stage that failed.
    """

    def __init__(
        self,
        store: ProductStore,
        writer: DocumentWriter,
        docstore: DocumentStore,
        enricher: Enricher | None = None,
        logger: structlog.BoundLogger | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self.store = store
        self.writer = writer
        self.docstore = docstore
        self.enricher = enricher
        self.logger = logger or structlog.get_logger("catalog_sync.sync")
        self._locks = locks or KeyedLock()

    def process(self, item: FeedItem) -> ItemOutcome:
        log = self.logger.bind(item_id=item.id)
        with self._locks.hold(item.id):
            try:
                stored_price = self.store.lookup(item.id)
            except StoreError as exc:
                return self._fail(item, None, "lookup", exc, log)
            classification = classify(item, stored_price)
            decision = classification.decision

            if decision is SyncDecision.SKIP:
                log.warning("item_skipped", reason="missing_identifier", title=item.title)
                return ItemOutcome(item.id, OutcomeStatus.SKIPPED, decision, reason="missing_identifier")

            if decision is SyncDecision.NO_OP:
                try:
                    self.store.update_status_and_price(item.id, ProductStatus.EXISTING, item.price)
                except StoreError as exc:
                    return self._fail(item, decision, "update", exc, log)
                log.debug("item_unchanged", price=str(item.price))
                return ItemOutcome(item.id, OutcomeStatus.UNCHANGED, decision)

            if classification.supersedes:
                return self._republish(item, classification, log)
            return self._create(item, decision, log)

    # ------------------------------------------------------------------
    def _republish(
        self, item: FeedItem, classification: Classification, log: structlog.BoundLogger
    ) -> ItemOutcome:
        decision = classification.decision
        try:
            record = self.store.get(item.id)
            self.store.update_status_and_price(item.id, ProductStatus.UPDATED, item.price)
        except StoreError as exc:
            return self._fail(item, decision, "update", exc, log)
        log.info(
            "price_changed",
            previous_price=str(classification.previous_price),
            price=str(item.price),
        )

        # Best effort: if this fails the old document lingers next to the new one
        document_id = (record.document_id if record is not None else None) or item.id
        try:
            self.docstore.remove(document_id)
        except DeleteError as exc:
            log.warning("document_delete_failed", document_id=document_id, error=str(exc))
        try:
            self.writer.discard(item.id)
        except OSError as exc:
            return self._fail(item, decision, "write", exc, log)
        return self._create(item, decision, log)

    def _create(
        self, item: FeedItem, decision: SyncDecision, log: structlog.BoundLogger
    ) -> ItemOutcome:
        try:
            self.store.insert(item.id, item.price, item.mpn, ProductStatus.NEW)
        except DuplicateKeyError as exc:
            log.error("duplicate_product", error=str(exc), hint="classification bug or race")
            return ItemOutcome(item.id, OutcomeStatus.FAILED, decision, stage="insert", reason=str(exc))
        except StoreError as exc:
            return self._fail(item, decision, "insert", exc, log)
        return self._publish(item, decision, log)

    def _publish(
        self, item: FeedItem, decision: SyncDecision, log: structlog.BoundLogger
    ) -> ItemOutcome:
        if self.writer.exists(item.id):
            log.info("document_exists", path=str(self.writer.path_for(item.id)))
            return ItemOutcome(item.id, OutcomeStatus.SKIPPED, decision, reason="already_processed")

        attributes: dict[str, str] = {}
        if self.enricher is not None:
            try:
                attributes = self.enricher.enrich(item.link)
            except EnrichError as exc:
                log.warning("enrich_failed", link=item.link, error=str(exc))

        try:
            document = format_document(item, attributes)
        except (TypeError, ValueError) as exc:
            return self._fail(item, decision, "format", exc, log)
        try:
            path = self.writer.write(document)
        except OSError as exc:
            return self._fail(item, decision, "write", exc, log)
        try:
            document_id = self.docstore.put(path) or item.id
        except UploadError as exc:
            # The record keeps the new price, so later runs see it unchanged and
            # will not upload it again; the failure is left to the operator.
            try:
                self.writer.discard(item.id)
            except OSError as discard_exc:
                log.warning("artifact_discard_failed", error=str(discard_exc))
            return self._fail(item, decision, "upload", exc, log)

        try:
            self.store.set_document_id(item.id, document_id)
        except StoreError as exc:
            log.warning("document_id_not_saved", document_id=document_id, error=str(exc))
        log.info("item_published", document_id=document_id, enriched=bool(attributes))
        return ItemOutcome(item.id, OutcomeStatus.PUBLISHED, decision)

    @staticmethod
    def _fail(
        item: FeedItem,
        decision: SyncDecision | None,
        stage: str,
        exc: Exception,
        log: structlog.BoundLogger,
    ) -> ItemOutcome:
        log.error("item_failed", stage=stage, error=str(exc))
        return ItemOutcome(item.id, OutcomeStatus.FAILED, decision, stage=stage, reason=str(exc))


__all__ = ["ItemOutcome", "KeyedLock", "OutcomeStatus", "SyncOrchestrator"]
