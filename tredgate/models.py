"""Data structures for loan applications and audit log entries.

Stored records use camelCase field names (``applicantName``, ``loanId``);
``to_dict``/``from_dict`` translate at the storage edge.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


class LoanStatus:
    """Loan status constants."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    DECISIONS = (APPROVED, REJECTED)


class AuditActionType:
    """Audit action type constants."""
    CREATE = "create"
    APPROVE = "approve"
    REJECT = "reject"
    AUTO_DECIDE = "auto-decide"
    DELETE = "delete"


@dataclass
class LoanApplication:
    """One loan application row."""
    id: str
    applicant_name: str
    amount: float
    term_months: int
    interest_rate: float
    status: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'applicantName': self.applicant_name,
            'amount': self.amount,
            'termMonths': self.term_months,
            'interestRate': self.interest_rate,
            'status': self.status,
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanApplication':
        """Build a loan from its stored form.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If ``data`` is not a mapping or a text field is not a string.
        """
        return cls(
            id=_text(data, 'id'),
            applicant_name=_text(data, 'applicantName'),
            amount=data['amount'],
            term_months=data['termMonths'],
            interest_rate=data['interestRate'],
            status=_text(data, 'status'),
            created_at=_text(data, 'createdAt'),
        )


@dataclass(frozen=True)
class AuditLogEntry:
    """An immutable record of one loan operation.

    ``loan_id`` and ``applicant_name`` are snapshots taken when the action
    happened; the loan itself may since have been deleted.
    """
    id: str
    timestamp: str
    action_type: str
    loan_id: str
    applicant_name: str
    previous_status: Optional[str]
    new_status: Optional[str]
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'actionType': self.action_type,
            'loanId': self.loan_id,
            'applicantName': self.applicant_name,
            'previousStatus': self.previous_status,
            'newStatus': self.new_status,
            'details': self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLogEntry':
        """Build an entry from its stored form.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a text field holds another type, e.g. ``null`` details.
        """
        return cls(
            id=_text(data, 'id'),
            timestamp=_text(data, 'timestamp'),
            action_type=_text(data, 'actionType'),
            loan_id=_text(data, 'loanId'),
            applicant_name=_text(data, 'applicantName'),
            previous_status=_text(data, 'previousStatus', optional=True),
            new_status=_text(data, 'newStatus', optional=True),
            details=_text(data, 'details'),
        )


@dataclass
class CreateLoanInput:
    """Form input for a new loan application."""
    applicant_name: str
    amount: float
    term_months: int
    interest_rate: float


@dataclass
class CreateAuditLogInput:
    """Input for a new audit entry; id and timestamp are generated."""
    action_type: str
    loan_id: str
    applicant_name: str
    previous_status: Optional[str]
    new_status: Optional[str]
    details: str


@dataclass
class AuditLogFilter:
    """Criteria for filtering audit log entries.

    Attributes:
        action_types: Keep only these action types. None or empty means all.
        search_text: Case-insensitive substring matched against loan id,
            applicant name and details. None or blank means all.
    """
    action_types: Optional[Iterable[str]] = None
    search_text: Optional[str] = None


@dataclass
class LoanSummary:
    """Headline counts shown above the loan table."""
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total_approved_amount: float = 0.0


def loans_from_list(rows: List[Dict[str, Any]]) -> List[LoanApplication]:
    return [LoanApplication.from_dict(row) for row in rows]


def entries_from_list(rows: List[Dict[str, Any]]) -> List[AuditLogEntry]:
    return [AuditLogEntry.from_dict(row) for row in rows]


def _text(data: Dict[str, Any], key: str, optional: bool = False) -> Optional[str]:
    value = data.get(key) if optional else data[key]
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value
