"""In-process request store used locally and in tests."""

from __future__ import annotations

import threading

from imagery_requests.models.request import ImageryRequestRecord
from imagery_requests.repository.base import RequestRepository


class InMemoryRequestRepository(RequestRepository):
    """Dict-backed repository guarded by a lock.

    Records are frozen dataclasses, so handing out the stored instance
    is safe.
    """

    def __init__(self) -> None:
        self._records: dict[str, ImageryRequestRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _load(self, request_id: str) -> ImageryRequestRecord | None:
        with self._lock:
            return self._records.get(request_id)

    def _save(self, record: ImageryRequestRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def _iter_records(self) -> list[ImageryRequestRecord]:
        with self._lock:
            return list(self._records.values())
