"""Unit of work over key-value storage.

A loan mutation writes two independent keys: the loan collection and the
audit log. This module groups those writes so that a failure in either one
restores both keys to the values they held before the operation started.
"""
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from tredgate.exceptions import StorageError, TransactionError

logger = logging.getLogger(__name__)


def snapshot_keys(storage, keys) -> Dict[str, Optional[str]]:
    """Capture the raw stored value of each key (None when absent)."""
    return {key: storage.get(key) for key in keys}


def restore_keys(storage, snapshot: Dict[str, Optional[str]]) -> None:
    """Write a snapshot back, removing keys that were absent when captured."""
    for key, value in snapshot.items():
        if value is None:
            storage.remove(key)
        else:
            storage.set(key, value)


@contextmanager
def unit_of_work(storage, *keys: str) -> Iterator[Dict[str, Optional[str]]]:
    """Context manager that rolls the given keys back if the body fails.

    Usage:
        with unit_of_work(storage, LOANS_STORAGE_KEY, AUDIT_LOG_STORAGE_KEY):
            loan_service.save_loans(loans)
            audit_log_service.create_entry(...)

    Storage failures inside the body are reported as a single
    TransactionError; any other exception is re-raised after the rollback.

    Raises:
        TransactionError: If a storage write failed, or if the rollback
            itself could not be completed.
    """
    try:
        snapshot = snapshot_keys(storage, keys)
    except StorageError as e:
        raise TransactionError(f"Transaction failed: {e.message}", details={'stage': 'snapshot'}) from e

    try:
        yield snapshot
    except Exception as e:
        logger.error("Rolling back %s after %s: %s", ", ".join(keys), type(e).__name__, e)
        try:
            restore_keys(storage, snapshot)
        except StorageError as restore_error:
            raise TransactionError(
                f"Transaction failed: {e}",
                details={'stage': 'rollback', 'rollback_error': restore_error.message}
            ) from e
        if isinstance(e, StorageError) and not isinstance(e, TransactionError):
            raise TransactionError(f"Transaction failed: {e.message}", details={'keys': list(keys)}) from e
        raise
