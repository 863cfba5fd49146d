"""Repository factory: selects the request store named by ``REQUEST_STORE``.

Usage::

    from imagery_requests.repository.factory import get_repository

    repository = get_repository(ServiceConfig.from_env())
    record = repository.find_by_id(request_id, ListingScope.any())

Backends are registered as lazy loaders so that the Azure SDK is only
imported when the blob store is selected.  The in-memory store is
cached per process so that every handler in a worker shares one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from imagery_requests.core.config import ConfigValidationError
from imagery_requests.core.constants import STORE_BLOB, STORE_MEMORY

if TYPE_CHECKING:
    from collections.abc import Callable

    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.repository.base import RequestRepository

logger = logging.getLogger("imagery_requests.repository.factory")

_STORE_REGISTRY: dict[str, Callable[[ServiceConfig], RequestRepository]] = {}
_INSTANCES: dict[str, RequestRepository] = {}


def _register_builtin_stores() -> None:
    def _memory(config: ServiceConfig) -> RequestRepository:
        from imagery_requests.repository.memory import InMemoryRequestRepository

        return InMemoryRequestRepository()

    def _blob(config: ServiceConfig) -> RequestRepository:
        from imagery_requests.core.ingress import get_blob_service_client
        from imagery_requests.repository.blob import BlobRequestRepository

        return BlobRequestRepository(get_blob_service_client(), config.requests_container)

    _STORE_REGISTRY[STORE_MEMORY] = _memory
    _STORE_REGISTRY[STORE_BLOB] = _blob


def _ensure_registry() -> None:
    if not _STORE_REGISTRY:
        _register_builtin_stores()


def register_store(name: str, loader: Callable[[ServiceConfig], RequestRepository]) -> None:
    """Register a custom store (used by tests to inject fakes).

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        msg = "Store name must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _STORE_REGISTRY[name] = loader
    _INSTANCES.pop(name, None)
    logger.debug("Registered request store: %s", name)


def get_repository(config: ServiceConfig) -> RequestRepository:
    """Return the (process-cached) repository for ``config.request_store``.

    Raises:
        ConfigValidationError: If the store name is not registered.
    """
    _ensure_registry()
    name = config.request_store
    cached = _INSTANCES.get(name)
    if cached is not None:
        return cached

    loader = _STORE_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_STORE_REGISTRY))
        raise ConfigValidationError("REQUEST_STORE", name, f"must be one of: {available}")

    repository = loader(config)
    _INSTANCES[name] = repository
    logger.info("Request store initialised | store=%s", name)
    return repository


def reset_repositories() -> None:
    """Drop cached instances (tests only)."""
    _INSTANCES.clear()
