"""
Report generation module for Tredgate.
Handles loan summary statistics and export of the loan table and audit log.
"""
import logging
from typing import Iterable, Optional, Sequence

import pandas as pd
from xlsxwriter.exceptions import XlsxWriterException

from tredgate.formatting import format_currency, format_date, format_percent, parse_timestamp
from tredgate.models import AuditLogEntry, AuditLogFilter, LoanApplication, LoanStatus, LoanSummary
from tredgate.services import calculate_monthly_payment, filter_audit_log

logger = logging.getLogger(__name__)

LOAN_COLUMNS = ["ID", "Applicant", "Amount", "Term (months)", "Interest Rate",
                "Monthly Payment", "Status", "Created"]

AUDIT_COLUMNS = ["Timestamp", "Action", "Loan ID", "Applicant",
                 "Previous Status", "New Status", "Details"]


def summarize_loans(loans: Sequence[LoanApplication]) -> LoanSummary:
    """Count loans per status and total the approved amount."""
    df = loans_to_dataframe(loans)
    if df.empty:
        return LoanSummary()

    counts = df["Status"].value_counts()
    approved = df[df["Status"] == LoanStatus.APPROVED]
    return LoanSummary(
        total=len(df),
        pending=int(counts.get(LoanStatus.PENDING, 0)),
        approved=int(counts.get(LoanStatus.APPROVED, 0)),
        rejected=int(counts.get(LoanStatus.REJECTED, 0)),
        total_approved_amount=float(approved["Amount"].sum()),
    )


def loans_to_dataframe(loans: Sequence[LoanApplication]) -> pd.DataFrame:
    """Build the loan table, one row per application in insertion order."""
    rows = [{
        "ID": loan.id,
        "Applicant": loan.applicant_name,
        "Amount": loan.amount,
        "Term (months)": loan.term_months,
        "Interest Rate": loan.interest_rate,
        "Monthly Payment": calculate_monthly_payment(loan),
        "Status": loan.status,
        "Created": loan.created_at,
    } for loan in loans]
    return pd.DataFrame(rows, columns=LOAN_COLUMNS)


def audit_log_to_dataframe(entries: Iterable[AuditLogEntry]) -> pd.DataFrame:
    """Build the audit table with parsed timestamps, in the given order."""
    rows = [{
        "Timestamp": parse_timestamp(entry.timestamp),
        "Action": entry.action_type,
        "Loan ID": entry.loan_id,
        "Applicant": entry.applicant_name,
        "Previous Status": entry.previous_status or "",
        "New Status": entry.new_status or "",
        "Details": entry.details,
    } for entry in entries]
    return pd.DataFrame(rows, columns=AUDIT_COLUMNS)


def format_loan_table(df: pd.DataFrame) -> pd.DataFrame:
    """Apply display formatting to a loan table copy (currency, percent, date)."""
    display = df.copy()
    if display.empty:
        return display
    display["Amount"] = display["Amount"].map(format_currency)
    display["Monthly Payment"] = display["Monthly Payment"].map(format_currency)
    display["Interest Rate"] = display["Interest Rate"].map(format_percent)
    display["Created"] = display["Created"].map(format_date)
    return display


class ReportGenerator:
    def __init__(self, loan_service, audit_log_service=None):
        self.loan_service = loan_service
        self.audit_log_service = audit_log_service or loan_service.audit_log_service

    def summary(self) -> LoanSummary:
        return summarize_loans(self.loan_service.list_loans())

    def export_loans(self, output_path: str, formatted: bool = True):
        """Export the loan table.

        Args:
            output_path: Destination; ``.csv`` writes CSV, anything else Excel.
            formatted: Write display strings instead of raw numbers.

        Returns:
            Tuple of (success, message).
        """
        df = loans_to_dataframe(self.loan_service.list_loans())
        if formatted:
            df = format_loan_table(df)
        return self._export(df, output_path, "Loans")

    def export_audit_log(self, output_path: str, criteria: Optional[AuditLogFilter] = None,
                         newest_first: bool = True):
        """Export the (optionally filtered) audit log.

        Returns:
            Tuple of (success, message).
        """
        entries = filter_audit_log(self.audit_log_service.get_audit_log(), criteria)
        if newest_first:
            entries.reverse()
        df = audit_log_to_dataframe(entries)
        if not df.empty:
            # Excel cannot store timezone-aware datetimes
            df["Timestamp"] = df["Timestamp"].map(lambda ts: ts.strftime("%Y-%m-%d %H:%M:%S"))
        return self._export(df, output_path, "Audit Log")

    def _export(self, df, output_path, sheet_name):
        if output_path.endswith('.csv'):
            return self._export_to_csv(df, output_path)
        return self._export_to_excel(df, output_path, sheet_name)

    def _export_to_excel(self, df, output_path, sheet_name):
        """Export DataFrame to Excel with a bold header row."""
        try:
            with pd.ExcelWriter(output_path, engine='xlsxwriter') as writer:
                df.to_excel(writer, index=False, sheet_name=sheet_name)
                workbook = writer.book
                worksheet = writer.sheets[sheet_name]

                header_fmt = workbook.add_format({'bold': True, 'border': 1, 'bg_color': '#D7E4BC'})
                for col_num, value in enumerate(df.columns.values):
                    worksheet.write(0, col_num, value, header_fmt)
                    worksheet.set_column(col_num, col_num, max(12, len(str(value)) + 2))

            return True, f"{sheet_name} exported ({len(df)} rows)."
        except (OSError, ValueError, XlsxWriterException) as e:
            logger.error("Excel export to %s failed: %s", output_path, e)
            return False, f"Excel Export Failed: {e}"

    def _export_to_csv(self, df, output_path):
        """Export DataFrame to CSV."""
        try:
            df.to_csv(output_path, index=False)
            return True, f"Export complete ({len(df)} rows, CSV)."
        except OSError as e:
            logger.error("CSV export to %s failed: %s", output_path, e)
            return False, f"CSV Export Failed: {e}"
