"""HTTP client for the dataset document store."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

import httpx
import structlog

from ..config import DocumentStoreConfig
from ..errors import DeleteError, UploadError


class DocumentStore(Protocol):
    def put(self, path: Path) -> str | None:
        """Upload a document file and return the id assigned by the store."""

    def remove(self, document_id: str) -> None:
        """Delete a previously uploaded document."""


class DocumentStoreClient:
    """Create and delete documents in one dataset using a bearer token."""

    def __init__(
        self,
        config: DocumentStoreConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self._client = client or httpx.Client(timeout=config.timeout)
        self.logger = logger or structlog.get_logger("catalog_sync.docstore")

    def close(self) -> None:
        self._client.close()

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_token}"}

    def _dataset_url(self, suffix: str) -> str:
        base = self.config.base_url.rstrip("/")
        return f"{base}/datasets/{self.config.dataset_id}/{suffix}"

    def put(self, path: Path) -> str | None:
        url = self._dataset_url("document/create_by_file")
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise UploadError(f"Failed to open file {path}: {exc}") from exc
        try:
            response = self._client.post(
                url,
                headers=self._headers,
                files={"file": (path.name, content, "text/plain")},
                data={"data": json.dumps(self.config.processing_rules())},
            )
        except httpx.HTTPError as exc:
            raise UploadError(f"Failed to execute upload request for {path.name}: {exc}") from exc
        if not response.is_success:
            raise UploadError(
                f"Failed to upload file {path.name}: {response.status_code} - {response.text}"
            )
        document_id = self._extract_document_id(response)
        self.logger.info("document_uploaded", file=path.name, document_id=document_id)
        return document_id

    def remove(self, document_id: str) -> None:
        url = self._dataset_url(f"documents/{document_id}")
        try:
            response = self._client.delete(url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise DeleteError(f"Failed to execute delete request for {document_id}: {exc}") from exc
        if response.status_code != httpx.codes.NO_CONTENT:
            raise DeleteError(
                f"Failed to delete document ID {document_id}: {response.status_code} - {response.text}"
            )
        self.logger.info("document_deleted", document_id=document_id)

    @staticmethod
    def _extract_document_id(response: httpx.Response) -> str | None:
        try:
            payload = response.json()
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        document = payload.get("document")
        if isinstance(document, dict) and document.get("id"):
            return str(document["id"])
        return None


__all__ = ["DocumentStore", "DocumentStoreClient"]
