"""Custom exceptions for the Tredgate loan service layer."""


class TredgateError(Exception):
    """Base exception for all Tredgate errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(TredgateError):
    """Raised when loan input fails one of the ordered validation checks."""

    def __init__(self, message: str, field: str = None):
        details = {}
        if field:
            details['field'] = field
        super().__init__(message, details)
        self.field = field

    def __str__(self):
        # The message alone is what the form shows to the user.
        return self.message


class LoanNotFoundError(TredgateError):
    """Raised when a loan cannot be found."""

    def __init__(self, loan_id: str):
        message = f"Loan with id {loan_id} not found"
        super().__init__(message, {'loan_id': loan_id})
        self.loan_id = loan_id

    def __str__(self):
        return self.message


NotFoundError = LoanNotFoundError


class StorageError(TredgateError):
    """Raised when the key-value storage backend fails."""

    def __init__(self, message: str, key: str = None, details: dict = None):
        details = dict(details or {})
        if key:
            details['key'] = key
        super().__init__(message, details)
        self.key = key


class TransactionError(StorageError):
    """Raised when a unit of work fails and its writes are rolled back."""
    pass
