"""Outcome type for reads that may degrade and for calls made by the UI.

``load_loans`` and ``load_audit_log`` return a Result so a caller can tell an
empty store from an unreadable one, while ``list_loans``/``get_audit_log``
fall back to an empty list via ``unwrap_or``. ``LoanEngine`` returns a Result
from every mutation so a form can show ``result.error`` as-is.
"""
from dataclasses import dataclass
from typing import Optional, TypeVar, Generic

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """Success with a value, or failure with a message and an ErrorType.

        loaded = audit_log_service.load_audit_log()
        if not loaded:
            show_banner(loaded.error)      # PARSE or STORAGE
        entries = loaded.unwrap_or([])
    """
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, value: T = None) -> 'Result[T]':
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, error_type: str = None) -> 'Result[T]':
        """Failure carrying a user-facing message and one of the ErrorType values."""
        return cls(success=False, error=error, error_type=error_type)

    def __bool__(self) -> bool:
        return self.success

    def unwrap_or(self, default: T) -> T:
        """The value on success, otherwise ``default`` (the degraded read)."""
        return self.value if self.success else default


class ErrorType:
    """Failure categories a caller can branch on."""
    NOT_FOUND = "NOT_FOUND"        # no loan with the given id
    VALIDATION = "VALIDATION"      # create input or status value rejected
    STORAGE = "STORAGE"            # backend read/write failed
    PARSE = "PARSE"                # stored slot is not a valid collection
    TRANSACTION = "TRANSACTION"    # a write failed and was rolled back
