"""Run coordinator wiring feed download, reconciliation and publishing."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

import structlog

from .config import SyncConfig
from .engine import (
    DocumentStore,
    DocumentStoreClient,
    DocumentWriter,
    Enricher,
    FeedFetcher,
    FeedItem,
    FeedParser,
    ItemOutcome,
    OutcomeStatus,
    PageEnricher,
    ProductStatus,
    ProductStore,
    SyncOrchestrator,
    WorkerPool,
)
from .errors import FetchError, ParseError, RunAbortedError, StoreError
from .infra import SQLiteManager
from .logging_conf import configure_logging
from .ui import ProgressReporter


@dataclass(slots=True)
class RunSummary:
    """Aggregate outcome of one run."""

    total: int = 0
    published: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    deleted: int = 0
    failures: list[ItemOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[ItemOutcome], deleted: int) -> "RunSummary":
        summary = cls(total=len(outcomes), deleted=deleted)
        for outcome in outcomes:
            if outcome.status is OutcomeStatus.PUBLISHED:
                summary.published += 1
            elif outcome.status is OutcomeStatus.UNCHANGED:
                summary.unchanged += 1
            elif outcome.status is OutcomeStatus.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
                summary.failures.append(outcome)
        return summary

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "published": self.published,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "deleted": self.deleted,
        }


class RunCoordinator:
    """Sequence one reconciliation pass.

    Fetching, parsing, opening the store and marking records stale are fatal
    when they fail (:class:`RunAbortedError`); item failures are not.
    """

    def __init__(
        self,
        config: SyncConfig,
        storage: SQLiteManager | None = None,
        fetcher: FeedFetcher | None = None,
        parser: FeedParser | None = None,
        docstore: DocumentStore | None = None,
        enricher: Enricher | None = None,
        pool_factory: Callable[[int], WorkerPool] | None = None,
        store_sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.storage = storage or SQLiteManager(config.store.busy_timeout_ms)
        self.parser = parser or FeedParser()
        self._fetcher = fetcher
        self._docstore = docstore
        self._owned: list = []
        if enricher is None and config.enrichment.enabled:
            enricher = PageEnricher(config.enrichment)
        self.enricher = enricher
        self.pool_factory = pool_factory or WorkerPool
        self.store_sleep = store_sleep
        self.logger = configure_logging().bind(component="coordinator")

    @property
    def fetcher(self) -> FeedFetcher:
        if self._fetcher is None:
            self._fetcher = FeedFetcher(self.config.feed)
            self._owned.append(self._fetcher)
        return self._fetcher

    @property
    def docstore(self) -> DocumentStore:
        if self._docstore is None:
            client = DocumentStoreClient(self.config.document_store)
            self._owned.append(client)
            self._docstore = client
        return self._docstore

    def close(self) -> None:
        for resource in self._owned:
            resource.close()
        self._owned.clear()

    # ------------------------------------------------------------------
    def run(
        self,
        feed_file: Path | None = None,
        progress: ProgressReporter | None = None,
    ) -> RunSummary:
        """Download (or read) the feed, then reconcile every item in it."""

        if feed_file is not None:
            try:
                items = self.parser.parse_file(feed_file)
            except ParseError as exc:
                raise RunAbortedError("parse", exc) from exc
        else:
            try:
                raw = self.fetcher.fetch(self.config.feed_path)
            except FetchError as exc:
                self.logger.error("feed_fetch_failed", url=self.config.feed.url, error=str(exc))
                raise RunAbortedError("fetch", exc) from exc
            try:
                items = self.parser.parse(raw)
            except ParseError as exc:
                raise RunAbortedError("parse", exc) from exc
        self.logger.info("feed_parsed", items=len(items))
        return self.run_items(items, progress=progress)

    def run_items(
        self,
        items: Sequence[FeedItem],
        progress: ProgressReporter | None = None,
    ) -> RunSummary:
        store = ProductStore(
            self.storage,
            self.config.store.path,
            max_retries=self.config.store.max_retries,
            backoff_step=self.config.store.backoff_step,
            sleep=self.store_sleep,
            logger=self.logger.bind(component="store"),
        )
        try:
            store.open()
            stale = store.mark_all_stale()
        except StoreError as exc:
            self.logger.error("store_init_failed", path=str(self.config.store.path), error=str(exc))
            store.close()
            raise RunAbortedError("store initialisation", exc) from exc
        self.logger.info("records_marked_stale", count=stale)

        orchestrator = SyncOrchestrator(
            store,
            DocumentWriter(self.config.documents_dir),
            self.docstore,
            enricher=self.enricher,
            logger=self.logger.bind(component="sync"),
        )

        def _report(outcome: ItemOutcome) -> ItemOutcome:
            if progress is not None:
                progress.advance(outcome.status.value, current_item=outcome.identifier)
            return outcome

        def _handle(item: FeedItem) -> ItemOutcome:
            return _report(orchestrator.process(item))

        def _on_error(item: FeedItem, exc: Exception) -> ItemOutcome:
            self.logger.error("worker_error", item_id=item.id, error=str(exc))
            return _report(
                ItemOutcome(item.id, OutcomeStatus.FAILED, stage="worker", reason=str(exc))
            )

        pool = self.pool_factory(self.config.worker_count)
        if progress is not None:
            progress.start(len(items))
        try:
            outcomes = pool.run_all(items, _handle, _on_error)
        finally:
            if progress is not None:
                progress.close()
            pool.shutdown()

        try:
            deleted = store.count_by_status()[ProductStatus.DELETED]
        except StoreError as exc:
            self.logger.warning("status_count_failed", error=str(exc))
            deleted = 0
        finally:
            store.close()

        summary = RunSummary.from_outcomes(outcomes, deleted=deleted)
        self.logger.info("run_completed", **summary.as_dict())
        return summary


__all__ = ["RunCoordinator", "RunSummary"]
