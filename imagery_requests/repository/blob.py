"""Azure Blob Storage request store.

One JSON document per request at ``requests/<id>.json`` inside the
configured container.  Listing scans the prefix and applies the
``ListingQuery`` in process; request volumes are small enough for an
admin triage queue that a scan is acceptable.

Writes use ``overwrite=True``, so a concurrent update simply replaces
the previous document (last write wins).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from azure.core.exceptions import AzureError, ResourceNotFoundError

from imagery_requests.core.constants import DEFAULT_REQUESTS_CONTAINER, REQUEST_BLOB_PREFIX
from imagery_requests.core.exceptions import RequestError, TransientError
from imagery_requests.models.request import ImageryRequestRecord
from imagery_requests.repository.base import RequestRepository

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient, ContainerClient

logger = logging.getLogger("imagery_requests.repository.blob")


def blob_name_for(request_id: str) -> str:
    """Return the blob path of a request document."""
    return f"{REQUEST_BLOB_PREFIX}{request_id}.json"


class BlobRequestRepository(RequestRepository):
    """Repository persisting request documents as JSON blobs."""

    def __init__(
        self,
        blob_service_client: BlobServiceClient,
        container: str = DEFAULT_REQUESTS_CONTAINER,
    ) -> None:
        self._service = blob_service_client
        self._container_name = container

    @property
    def container(self) -> ContainerClient:
        return self._service.get_container_client(self._container_name)

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    def _load(self, request_id: str) -> ImageryRequestRecord | None:
        blob_path = blob_name_for(request_id)
        try:
            data = self.container.get_blob_client(blob_path).download_blob().readall()
        except ResourceNotFoundError:
            return None
        except AzureError as exc:
            msg = f"Failed to read request document {self._container_name}/{blob_path}: {exc}"
            raise TransientError(msg, operation="load") from exc
        return _decode(data, blob_path)

    def _save(self, record: ImageryRequestRecord) -> None:
        blob_path = blob_name_for(record.id)
        document = json.dumps(record.to_dict(), separators=(",", ":"))
        try:
            self.container.get_blob_client(blob_path).upload_blob(
                document.encode("utf-8"),
                overwrite=True,
            )
        except AzureError as exc:
            msg = f"Failed to write request document {self._container_name}/{blob_path}: {exc}"
            raise TransientError(msg, operation="save") from exc
        logger.debug("Request document written | path=%s", blob_path)

    def _iter_records(self) -> list[ImageryRequestRecord]:
        records: list[ImageryRequestRecord] = []
        container = self.container
        try:
            for blob in container.list_blobs(name_starts_with=REQUEST_BLOB_PREFIX):
                data = container.get_blob_client(blob.name).download_blob().readall()
                try:
                    records.append(_decode(data, blob.name))
                except RequestError:
                    logger.warning("Skipping unreadable request document | path=%s", blob.name)
        except AzureError as exc:
            msg = f"Failed to scan request documents in {self._container_name}: {exc}"
            raise TransientError(msg, operation="list") from exc
        return records


def _decode(data: bytes | str, blob_path: str) -> ImageryRequestRecord:
    """Parse a stored document.

    Raises:
        RequestError: If the document is not a valid record.
    """
    try:
        document = json.loads(data)
    except (json.JSONDecodeError, TypeError) as exc:
        msg = f"Request document {blob_path} is not valid JSON: {exc}"
        raise RequestError(msg, operation="load", code="CORRUPT_DOCUMENT") from exc
    if not isinstance(document, dict):
        msg = f"Request document {blob_path} is not an object: {type(document).__name__}"
        raise RequestError(msg, operation="load", code="CORRUPT_DOCUMENT")
    try:
        return ImageryRequestRecord.from_dict(document)
    except (KeyError, TypeError, ValueError, RequestError) as exc:
        msg = f"Request document {blob_path} is malformed: {exc}"
        raise RequestError(msg, operation="load", code="CORRUPT_DOCUMENT") from exc
