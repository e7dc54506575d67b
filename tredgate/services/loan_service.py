"""Loan application service for Tredgate.

This service handles all loan-related operations including:
- Loan creation with ordered input validation
- Manual approval and rejection
- Rule-based auto-decision
- Monthly payment calculation
- Loan deletion

Every mutation writes the whole loan collection back to storage and appends
exactly one audit entry; both writes share a unit of work.
"""
import json
import logging
import math
from contextlib import contextmanager
from numbers import Real
from typing import List, Sequence

from tredgate.config import (
    AUTO_APPROVE_MAX_AMOUNT,
    AUTO_APPROVE_MAX_TERM,
    LOANS_STORAGE_KEY,
)
from tredgate.exceptions import LoanNotFoundError, StorageError, ValidationError
from tredgate.formatting import format_currency_whole, generate_id, utc_timestamp
from tredgate.models import (
    AuditActionType,
    CreateAuditLogInput,
    CreateLoanInput,
    LoanApplication,
    LoanStatus,
    loans_from_list,
)
from tredgate.result import ErrorType, Result

from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def calculate_monthly_payment(loan: LoanApplication) -> float:
    """Monthly payment using simple interest: amount * (1 + rate) / term.

    No rounding is applied; display code formats the value.
    """
    total = loan.amount * (1 + loan.interest_rate)
    return total / loan.term_months


def validate_loan_input(loan_input: CreateLoanInput) -> str:
    """Validate creation input in order, failing on the first violation.

    Returns:
        The trimmed applicant name.

    Raises:
        ValidationError: Naming the first check that failed.
    """
    name = loan_input.applicant_name.strip() if isinstance(loan_input.applicant_name, str) else ""
    if not name:
        raise ValidationError("Applicant name is required", "applicant_name")
    # Written as positive checks so NaN and non-numbers fail too.
    if not (_is_finite_number(loan_input.amount) and loan_input.amount > 0):
        raise ValidationError("Amount must be greater than 0", "amount")
    if not (_is_finite_number(loan_input.term_months) and loan_input.term_months > 0):
        raise ValidationError("Term months must be greater than 0", "term_months")
    if not (_is_finite_number(loan_input.interest_rate) and loan_input.interest_rate >= 0):
        raise ValidationError("Interest rate cannot be negative", "interest_rate")
    return name


def _is_finite_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def auto_decision(loan: LoanApplication):
    """Apply the auto-decide rule to a loan's current amount and term.

    Returns:
        Tuple of (new_status, reason).
    """
    amount_ok = loan.amount <= AUTO_APPROVE_MAX_AMOUNT
    term_ok = loan.term_months <= AUTO_APPROVE_MAX_TERM
    max_amount = format_currency_whole(AUTO_APPROVE_MAX_AMOUNT)

    if amount_ok and term_ok:
        return LoanStatus.APPROVED, f"amount ≤ {max_amount} and term ≤ {AUTO_APPROVE_MAX_TERM} months"

    reasons = []
    if not amount_ok:
        reasons.append(f"amount > {max_amount}")
    if not term_ok:
        reasons.append(f"term > {AUTO_APPROVE_MAX_TERM} months")
    return LoanStatus.REJECTED, " and ".join(reasons)


class LoanService:
    """Handles loan application operations.

    This class owns the stored loan collection and records an audit entry
    for every change through the AuditLogService.
    """

    def __init__(self, storage, audit_log_service=None, storage_key: str = LOANS_STORAGE_KEY):
        """Initialize LoanService.

        Args:
            storage: KeyValueStorage instance for data persistence.
            audit_log_service: Optional AuditLogService sharing the same storage.
            storage_key: Key under which the loans are stored.
        """
        self.storage = storage
        self.storage_key = storage_key
        self._audit_log_service = audit_log_service

    @property
    def audit_log_service(self):
        """Lazy-load the audit log service on the same storage."""
        if self._audit_log_service is None:
            from .audit_log_service import AuditLogService
            self._audit_log_service = AuditLogService(self.storage)
        return self._audit_log_service

    def load_loans(self) -> Result[List[LoanApplication]]:
        """Load all loans, distinguishing an empty store from a corrupt one."""
        try:
            stored = self.storage.get(self.storage_key)
        except StorageError as e:
            logger.warning("Loans unreadable, treating as empty: %s", e)
            return Result.fail(f"Could not read loans: {e.message}", ErrorType.STORAGE)

        if not stored:
            return Result.ok([])

        try:
            rows = json.loads(stored)
            if not isinstance(rows, list):
                raise TypeError(f"expected a list, got {type(rows).__name__}")
            loans = loans_from_list(rows)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Loans corrupt, treating as empty: %s", e)
            return Result.fail(f"Could not parse loans: {e}", ErrorType.PARSE)

        return Result.ok(loans)

    def list_loans(self) -> List[LoanApplication]:
        """Return all loans in insertion order; empty on missing or corrupt storage."""
        return self.load_loans().unwrap_or([])

    def save_loans(self, loans: Sequence[LoanApplication]):
        """Persist the full loan collection."""
        self.storage.set(self.storage_key, json.dumps([loan.to_dict() for loan in loans]))

    def get_loan(self, loan_id: str) -> LoanApplication:
        """Find a loan by id.

        Raises:
            LoanNotFoundError: If no loan has this id.
        """
        for loan in self.list_loans():
            if loan.id == loan_id:
                return loan
        raise LoanNotFoundError(loan_id)

    def calculate_monthly_payment(self, loan: LoanApplication) -> float:
        return calculate_monthly_payment(loan)

    def create_loan(self, loan_input: CreateLoanInput) -> LoanApplication:
        """Create a new pending loan application.

        Args:
            loan_input: Applicant name, amount, term in months and interest rate.

        Returns:
            The stored LoanApplication.

        Raises:
            ValidationError: If the input fails validation; nothing is stored.
        """
        name = validate_loan_input(loan_input)

        loan = LoanApplication(
            id=generate_id(),
            applicant_name=name,
            amount=loan_input.amount,
            term_months=loan_input.term_months,
            interest_rate=loan_input.interest_rate,
            status=LoanStatus.PENDING,
            created_at=utc_timestamp(),
        )

        with self._unit_of_work():
            loans = self.list_loans()
            loans.append(loan)
            self.save_loans(loans)

            self.audit_log_service.create_entry(CreateAuditLogInput(
                action_type=AuditActionType.CREATE,
                loan_id=loan.id,
                applicant_name=loan.applicant_name,
                previous_status=None,
                new_status=LoanStatus.PENDING,
                details=(f"New loan application created for {format_currency_whole(loan.amount)} "
                         f"over {loan.term_months} months"),
            ))

        logger.info("Created loan %s for %s", loan.id, loan.applicant_name)
        return loan

    def update_loan_status(self, loan_id: str, status: str) -> LoanApplication:
        """Approve or reject a loan manually.

        Re-deciding an already decided loan is allowed and logged again.

        Args:
            loan_id: ID of the loan.
            status: LoanStatus.APPROVED or LoanStatus.REJECTED.

        Returns:
            The updated LoanApplication.

        Raises:
            ValidationError: If ``status`` is not a decision status.
            LoanNotFoundError: If the loan doesn't exist.
        """
        if status not in LoanStatus.DECISIONS:
            raise ValidationError(f"Invalid status '{status}'", "status")

        action_type = AuditActionType.APPROVE if status == LoanStatus.APPROVED else AuditActionType.REJECT
        return self._apply_decision(
            loan_id, status, action_type,
            lambda loan: f"Loan {status} for {loan.applicant_name} ({format_currency_whole(loan.amount)})"
        )

    def approve_loan(self, loan_id: str) -> LoanApplication:
        return self.update_loan_status(loan_id, LoanStatus.APPROVED)

    def reject_loan(self, loan_id: str) -> LoanApplication:
        return self.update_loan_status(loan_id, LoanStatus.REJECTED)

    def auto_decide_loan(self, loan_id: str) -> LoanApplication:
        """Approve or reject a loan using the amount and term thresholds.

        The rule is evaluated regardless of the loan's current status.

        Raises:
            LoanNotFoundError: If the loan doesn't exist.
        """
        loans = self.list_loans()
        index = self._find_index(loans, loan_id)
        new_status, reason = auto_decision(loans[index])

        return self._apply_decision(
            loan_id, new_status, AuditActionType.AUTO_DECIDE,
            lambda loan: f"Auto-decision: {new_status} ({reason})",
            loans=loans,
        )

    def delete_loan(self, loan_id: str) -> LoanApplication:
        """Delete a loan application.

        Returns:
            The removed LoanApplication.

        Raises:
            LoanNotFoundError: If the loan doesn't exist.
        """
        loans = self.list_loans()
        index = self._find_index(loans, loan_id)

        with self._unit_of_work():
            loan = loans.pop(index)
            self.save_loans(loans)

            self.audit_log_service.create_entry(CreateAuditLogInput(
                action_type=AuditActionType.DELETE,
                loan_id=loan.id,
                applicant_name=loan.applicant_name,
                previous_status=loan.status,
                new_status=None,
                details=(f"Loan application deleted for {loan.applicant_name} "
                         f"({format_currency_whole(loan.amount)}, was {loan.status})"),
            ))

        logger.info("Deleted loan %s (was %s)", loan.id, loan.status)
        return loan

    def _apply_decision(self, loan_id, new_status, action_type, describe, loans=None) -> LoanApplication:
        """Set a loan's status in place, persist, and record the transition."""
        if loans is None:
            loans = self.list_loans()
        index = self._find_index(loans, loan_id)

        with self._unit_of_work():
            loan = loans[index]
            previous_status = loan.status
            loan.status = new_status
            self.save_loans(loans)

            self.audit_log_service.create_entry(CreateAuditLogInput(
                action_type=action_type,
                loan_id=loan.id,
                applicant_name=loan.applicant_name,
                previous_status=previous_status,
                new_status=new_status,
                details=describe(loan),
            ))

        logger.info("Loan %s: %s -> %s (%s)", loan.id, previous_status, new_status, action_type)
        return loan

    def _find_index(self, loans: Sequence[LoanApplication], loan_id: str) -> int:
        for index, loan in enumerate(loans):
            if loan.id == loan_id:
                return index
        raise LoanNotFoundError(loan_id)

    @contextmanager
    def _unit_of_work(self):
        audit = self.audit_log_service
        if audit.storage is self.storage:
            with unit_of_work(self.storage, self.storage_key, audit.storage_key):
                yield
        else:
            with unit_of_work(self.storage, self.storage_key), \
                    unit_of_work(audit.storage, audit.storage_key):
                yield
