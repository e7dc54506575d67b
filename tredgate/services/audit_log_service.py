"""Audit log service for Tredgate.

This service owns the append-only history of loan operations:
- Loading and persisting the entry list (oldest first)
- Appending entries with generated id and timestamp
- FIFO eviction beyond the configured capacity
- Filtering by action type and free-text search
"""
import json
import logging
from typing import Iterable, List, Optional, Sequence, TypeVar

from tredgate.config import AUDIT_LOG_STORAGE_KEY, MAX_AUDIT_ENTRIES
from tredgate.exceptions import StorageError
from tredgate.formatting import generate_id, utc_timestamp
from tredgate.models import AuditLogEntry, AuditLogFilter, CreateAuditLogInput, entries_from_list
from tredgate.result import ErrorType, Result

logger = logging.getLogger(__name__)

T = TypeVar('T')


def trim_to_capacity(entries: Sequence[T], max_entries: int) -> List[T]:
    """Keep only the newest ``max_entries`` items, preserving order.

    Args:
        entries: Items in insertion order (oldest first).
        max_entries: Capacity; must be non-negative.

    Returns:
        A new list holding at most ``max_entries`` of the last items.
    """
    if max_entries < 0:
        raise ValueError(f"max_entries must be non-negative, got {max_entries}")
    if len(entries) <= max_entries:
        return list(entries)
    if max_entries == 0:
        return []
    return list(entries[-max_entries:])


def filter_audit_log(entries: Iterable[AuditLogEntry],
                     criteria: Optional[AuditLogFilter] = None) -> List[AuditLogEntry]:
    """Return the entries matching every supplied criterion, in input order.

    An absent, empty or blank criterion imposes no filter. The search text is
    trimmed and matched case-insensitively against the loan id, the applicant
    name and the details.
    """
    result = list(entries)
    if criteria is None:
        return result

    if criteria.action_types:
        allowed = set(criteria.action_types)
        result = [entry for entry in result if entry.action_type in allowed]

    if criteria.search_text and criteria.search_text.strip():
        needle = criteria.search_text.strip().lower()
        result = [
            entry for entry in result
            if needle in entry.loan_id.lower()
            or needle in entry.applicant_name.lower()
            or needle in entry.details.lower()
        ]

    return result


class AuditLogService:
    """Handles audit log persistence and queries.

    Attributes:
        storage: KeyValueStorage holding the serialized entries.
        max_entries: Capacity enforced on every save.
    """

    def __init__(self, storage, max_entries: int = MAX_AUDIT_ENTRIES,
                 storage_key: str = AUDIT_LOG_STORAGE_KEY):
        """Initialize AuditLogService.

        Args:
            storage: KeyValueStorage instance for persistence.
            max_entries: Maximum number of retained entries.
            storage_key: Key under which the entries are stored.
        """
        self.storage = storage
        self.max_entries = max_entries
        self.storage_key = storage_key

    def load_audit_log(self) -> Result[List[AuditLogEntry]]:
        """Load all entries, reporting why the result is empty if it is.

        Returns:
            Result.ok(entries) for a missing key or valid data;
            Result.fail(..., ErrorType.STORAGE) if the backend read failed;
            Result.fail(..., ErrorType.PARSE) if the stored value is corrupt.
        """
        try:
            stored = self.storage.get(self.storage_key)
        except StorageError as e:
            logger.warning("Audit log unreadable, treating as empty: %s", e)
            return Result.fail(f"Could not read audit log: {e.message}", ErrorType.STORAGE)

        if not stored:
            return Result.ok([])

        try:
            rows = json.loads(stored)
            if not isinstance(rows, list):
                raise TypeError(f"expected a list, got {type(rows).__name__}")
            entries = entries_from_list(rows)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Audit log corrupt, treating as empty: %s", e)
            return Result.fail(f"Could not parse audit log: {e}", ErrorType.PARSE)

        return Result.ok(entries)

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return all entries oldest first; empty on missing or corrupt storage."""
        return self.load_audit_log().unwrap_or([])

    def save_audit_log(self, entries: Sequence[AuditLogEntry]) -> List[AuditLogEntry]:
        """Persist entries, evicting the oldest beyond capacity.

        Returns:
            The list actually stored.
        """
        trimmed = trim_to_capacity(entries, self.max_entries)
        evicted = len(entries) - len(trimmed)
        if evicted:
            logger.debug("Evicted %d oldest audit entries", evicted)
        self.storage.set(self.storage_key, json.dumps([entry.to_dict() for entry in trimmed]))
        return trimmed

    def create_entry(self, entry_input: CreateAuditLogInput) -> AuditLogEntry:
        """Create and persist a new audit entry.

        Args:
            entry_input: Entry data without id and timestamp.

        Returns:
            The stored AuditLogEntry.
        """
        entry = AuditLogEntry(
            id=generate_id(),
            timestamp=utc_timestamp(),
            action_type=entry_input.action_type,
            loan_id=entry_input.loan_id,
            applicant_name=entry_input.applicant_name,
            previous_status=entry_input.previous_status,
            new_status=entry_input.new_status,
            details=entry_input.details,
        )

        entries = self.get_audit_log()
        entries.append(entry)
        self.save_audit_log(entries)

        logger.debug("Audit %s for loan %s", entry.action_type, entry.loan_id)
        return entry

    def filter_audit_log(self, entries: Iterable[AuditLogEntry],
                         criteria: Optional[AuditLogFilter] = None) -> List[AuditLogEntry]:
        return filter_audit_log(entries, criteria)

    def get_max_entries(self) -> int:
        return self.max_entries

    def clear_audit_log(self):
        """Remove every entry."""
        self.storage.remove(self.storage_key)
