"""Services package for Tredgate business logic.

This package contains the loan and audit log services and the unit of work
that keeps their two storage writes together.
"""

from .audit_log_service import AuditLogService, filter_audit_log, trim_to_capacity
from .loan_service import LoanService, calculate_monthly_payment
from .unit_of_work import unit_of_work

__all__ = ['AuditLogService', 'LoanService', 'calculate_monthly_payment',
           'filter_audit_log', 'trim_to_capacity', 'unit_of_work']
