"""Business logic facade for Tredgate.

This module provides the LoanEngine class which the presentation layer calls.
It wraps the focused service classes in tredgate/services/ and turns their
exceptions into Result objects, so a form can display ``result.error``
without its own try/except.

Service Classes:
    - LoanService: Loan application operations
    - AuditLogService: Audit trail persistence and filtering
"""
import logging
from typing import Iterable, List, Optional

from tredgate.exceptions import LoanNotFoundError, TransactionError, TredgateError, ValidationError
from tredgate.models import AuditLogEntry, AuditLogFilter, CreateLoanInput, LoanApplication, LoanSummary
from tredgate.reports import ReportGenerator, summarize_loans
from tredgate.result import ErrorType, Result
from tredgate.services import AuditLogService, LoanService

logger = logging.getLogger(__name__)


class LoanEngine:
    """Handles loan and audit operations for the UI, interfacing with storage.

    Attributes:
        storage: KeyValueStorage shared by both services.
        loan_service: LoanService instance (lazy-loaded).
        audit_log_service: AuditLogService instance (lazy-loaded).
        report_generator: ReportGenerator instance (lazy-loaded).
    """

    def __init__(self, storage):
        self.storage = storage
        self._loan_service = None
        self._audit_log_service = None
        self._report_generator = None

    @property
    def audit_log_service(self) -> AuditLogService:
        """Lazy-load AuditLogService instance."""
        if self._audit_log_service is None:
            self._audit_log_service = AuditLogService(self.storage)
        return self._audit_log_service

    @property
    def loan_service(self) -> LoanService:
        """Lazy-load LoanService instance."""
        if self._loan_service is None:
            self._loan_service = LoanService(self.storage, self.audit_log_service)
        return self._loan_service

    @property
    def report_generator(self) -> ReportGenerator:
        """Lazy-load ReportGenerator instance."""
        if self._report_generator is None:
            self._report_generator = ReportGenerator(self.loan_service, self.audit_log_service)
        return self._report_generator

    def list_loans(self) -> List[LoanApplication]:
        return self.loan_service.list_loans()

    def create_loan(self, applicant_name, amount, term_months, interest_rate) -> Result[LoanApplication]:
        """Create a loan application from form values.

        Delegates to LoanService.
        """
        return self._run(
            self.loan_service.create_loan,
            CreateLoanInput(applicant_name, amount, term_months, interest_rate),
        )

    def approve_loan(self, loan_id: str) -> Result[LoanApplication]:
        return self._run(self.loan_service.approve_loan, loan_id)

    def reject_loan(self, loan_id: str) -> Result[LoanApplication]:
        return self._run(self.loan_service.reject_loan, loan_id)

    def auto_decide_loan(self, loan_id: str) -> Result[LoanApplication]:
        return self._run(self.loan_service.auto_decide_loan, loan_id)

    def delete_loan(self, loan_id: str) -> Result[LoanApplication]:
        return self._run(self.loan_service.delete_loan, loan_id)

    def monthly_payment(self, loan: LoanApplication) -> float:
        return self.loan_service.calculate_monthly_payment(loan)

    def audit_entries(self, action_types: Optional[Iterable[str]] = None,
                      search_text: Optional[str] = None,
                      newest_first: bool = True) -> List[AuditLogEntry]:
        """Audit entries for the history view.

        Loads the whole log, applies the filter, then reverses for display
        when ``newest_first`` is set.
        """
        entries = self.audit_log_service.get_audit_log()
        filtered = self.audit_log_service.filter_audit_log(
            entries, AuditLogFilter(action_types=action_types, search_text=search_text)
        )
        if newest_first:
            filtered.reverse()
        return filtered

    def summary(self) -> LoanSummary:
        return summarize_loans(self.list_loans())

    def _run(self, operation, *args) -> Result:
        """Call a service operation, converting domain errors to a Result."""
        try:
            return Result.ok(operation(*args))
        except ValidationError as e:
            return Result.fail(e.message, ErrorType.VALIDATION)
        except LoanNotFoundError as e:
            return Result.fail(e.message, ErrorType.NOT_FOUND)
        except TransactionError as e:
            logger.error("Operation %s rolled back: %s", operation.__name__, e)
            return Result.fail(e.message, ErrorType.TRANSACTION)
        except TredgateError as e:
            logger.error("Operation %s failed: %s", operation.__name__, e)
            return Result.fail(e.message, ErrorType.STORAGE)
