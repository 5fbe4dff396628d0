"""Selection of the store that backs the application."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta

from .config import StorageConfig, StorageType
from .memory import MemoryStore
from .sql_store import SQLStore

logger = logging.getLogger(__name__)


@dataclass
class _State:
    store: MemoryStore | SQLStore | None = None
    initialized: bool = False
    stop_event: threading.Event | None = None


_state = _State()
_state_lock = threading.Lock()


def get() -> MemoryStore | SQLStore:
    """Return the active store, creating a default in-memory one if needed."""
    if not _state.initialized:
        logger.warning("Store requested before it was initialized, automatically initializing")
        initialize(None)
    return _state.store


def initialize(cfg: StorageConfig | None = None) -> None:
    """Create the active store from a storage configuration.

    Without a configuration, an empty one is used, which selects the
    in-memory store. Errors raised while opening an SQL store propagate.
    """
    with _state_lock:
        _state.initialized = True
        if _state.stop_event is not None:
            _state.stop_event.set()
        if cfg is None:
            logger.info("No storage configuration given, defaulting to an empty configuration")
            cfg = StorageConfig()
        storage_type = cfg.type
        if not cfg.path and storage_type != StorageType.POSTGRES:
            logger.info("Creating storage provider of type=%s", getattr(storage_type, "value", storage_type))
        _state.stop_event = threading.Event()
        if storage_type in (StorageType.SQLITE, StorageType.POSTGRES):
            _state.store = SQLStore(StorageType(storage_type).value, cfg.path, cfg.caching)
        else:
            _state.store = MemoryStore()


def auto_save(store, interval: float | timedelta, stop_event: threading.Event) -> None:
    """Call ``store.save()`` every ``interval`` until ``stop_event`` is set.

    Failures are logged and do not stop the loop.
    """
    seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
    while not stop_event.wait(seconds):
        logger.info("Saving")
        try:
            store.save()
        except Exception as error:  # noqa: BLE001 - a failed save must not end the loop
            logger.error("Save failed: %s", error)
    logger.info("Stopping active job")