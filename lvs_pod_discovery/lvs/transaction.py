"""Serialized model mutations with a config file write on commit."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .config_codec import serialize, write_config_file
from .service_model import ServiceModel

logger = logging.getLogger(__name__)


class ConfigStore:
    """Owns the ServiceModel and the LVS config file it is persisted to.

    All access to the model goes through transaction(), which holds a single
    lock across the read-modify-write and the file write that follows it.
    """

    def __init__(self, model: ServiceModel, path: str | Path):
        self.model = model
        self.path = Path(path)
        self._lock = threading.RLock()

    def transaction(self) -> Transaction:
        return Transaction(self)

    def persist(self) -> None:
        """Write the current model to disk. Raises PersistenceError."""
        with self._lock:
            write_config_file(self.path, serialize(self.model))
        logger.debug("Wrote %s", self.path)


class Transaction:
    """Context manager that wraps one locked model mutation.

    Usage:
        with store.transaction() as txn:
            txn.model.upsert_backend_all_services(server)
            txn.mark_changed()
        # Writes the config file if mark_changed() was called.

    If the body raises, nothing is written and the exception propagates.
    A failed write raises PersistenceError; the in-memory change is kept
    and goes out with the next successful write.
    """

    def __init__(self, store: ConfigStore):
        self.store = store
        self._changed = False

    @property
    def model(self) -> ServiceModel:
        return self.store.model

    def mark_changed(self) -> None:
        """Signal that the model was modified and should be written out."""
        self._changed = True

    def __enter__(self) -> Transaction:
        self.store._lock.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            if exc_type is not None:
                logger.warning("Model update aborted due to exception: %s", exc_val)
                return False  # Re-raise the exception

            if self._changed:
                self.store.persist()
            return False
        finally:
            self.store._lock.release()
