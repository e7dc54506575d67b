"""Tredgate loan application service layer."""

from .engine import LoanEngine
from .exceptions import (
    LoanNotFoundError,
    NotFoundError,
    StorageError,
    TransactionError,
    TredgateError,
    ValidationError,
)
from .models import (
    AuditActionType,
    AuditLogEntry,
    AuditLogFilter,
    CreateAuditLogInput,
    CreateLoanInput,
    LoanApplication,
    LoanStatus,
    LoanSummary,
)
from .logging_utils import configure_logging
from .result import ErrorType, Result
from .services import AuditLogService, LoanService
from .storage import KeyValueStorage, MemoryStorage, SqliteStorage

__version__ = "1.0.0"

__all__ = [
    'LoanEngine', 'LoanService', 'AuditLogService',
    'KeyValueStorage', 'MemoryStorage', 'SqliteStorage',
    'LoanApplication', 'AuditLogEntry', 'CreateLoanInput', 'CreateAuditLogInput',
    'AuditLogFilter', 'LoanSummary', 'LoanStatus', 'AuditActionType',
    'Result', 'ErrorType',
    'TredgateError', 'ValidationError', 'LoanNotFoundError', 'NotFoundError',
    'StorageError', 'TransactionError',
    'configure_logging',
]
