"""Tests for loan creation, decisions, deletion and the audit trail they leave."""
import json
import os
import sys
import unittest
from datetime import datetime, timezone

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tredgate.config import LOANS_STORAGE_KEY
from tredgate.exceptions import LoanNotFoundError, ValidationError
from tredgate.formatting import parse_timestamp
from tredgate.models import AuditActionType, CreateLoanInput, LoanStatus
from tredgate.result import ErrorType
from tredgate.services import AuditLogService, LoanService, calculate_monthly_payment
from tredgate.storage import MemoryStorage


def loan_input(name="Alice", amount=50000, term=24, rate=0.08):
    return CreateLoanInput(applicant_name=name, amount=amount, term_months=term, interest_rate=rate)


class LoanServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.storage = MemoryStorage()
        self.audit = AuditLogService(self.storage)
        self.service = LoanService(self.storage, self.audit)


class TestListLoans(LoanServiceTestCase):

    def test_returns_empty_list_when_nothing_stored(self):
        """An absent key reads as an empty collection."""
        self.assertEqual(self.service.list_loans(), [])
        result = self.service.load_loans()
        self.assertTrue(result.success)
        self.assertEqual(result.value, [])

    def test_returns_empty_list_for_corrupt_json(self):
        """Unparsable storage degrades to empty, but load_loans reports why."""
        self.storage.set(LOANS_STORAGE_KEY, "{not json")

        self.assertEqual(self.service.list_loans(), [])
        result = self.service.load_loans()
        self.assertFalse(result.success)
        self.assertEqual(result.error_type, ErrorType.PARSE)

    def test_non_list_payload_is_treated_as_corrupt(self):
        """A JSON object instead of an array is not a loan collection."""
        self.storage.set(LOANS_STORAGE_KEY, json.dumps({"id": "x"}))

        with self.assertLogs("tredgate.services.loan_service", level="WARNING"):
            self.assertEqual(self.service.list_loans(), [])

    def test_non_string_name_in_storage_is_corrupt(self):
        loan = self.service.create_loan(loan_input())
        row = loan.to_dict()
        row["applicantName"] = None
        self.storage.set(LOANS_STORAGE_KEY, json.dumps([row]))

        self.assertEqual(self.service.load_loans().error_type, ErrorType.PARSE)

    def test_save_then_list_round_trips(self):
        """Saving the listed loans and listing again gives equal records."""
        self.service.create_loan(loan_input("Alice"))
        self.service.create_loan(loan_input("Bob", amount=1200, term=12, rate=0.0))
        before = self.service.list_loans()

        self.service.save_loans(before)

        self.assertEqual(self.service.list_loans(), before)

    def test_stored_json_uses_camel_case_fields(self):
        """Stored records use camelCase field names."""
        self.service.create_loan(loan_input())
        row = json.loads(self.storage.get(LOANS_STORAGE_KEY))[0]

        self.assertEqual(
            set(row),
            {"id", "applicantName", "amount", "termMonths", "interestRate", "status", "createdAt"}
        )


class TestCreateLoan(LoanServiceTestCase):

    def test_creates_pending_loan(self):
        """A valid loan is stored as pending with an id and creation time."""
        before = datetime.now(timezone.utc).replace(microsecond=0)
        loan = self.service.create_loan(loan_input())

        self.assertEqual(loan.status, LoanStatus.PENDING)
        self.assertTrue(loan.id)
        created = parse_timestamp(loan.created_at)
        self.assertGreaterEqual(created, before)
        self.assertLessEqual(created, datetime.now(timezone.utc))
        self.assertEqual(self.service.list_loans(), [loan])

    def test_ids_are_unique(self):
        """Every created loan gets a distinct id."""
        ids = {self.service.create_loan(loan_input(f"Applicant {i}")).id for i in range(20)}
        self.assertEqual(len(ids), 20)

    def test_name_is_trimmed(self):
        """Surrounding whitespace is stripped from the applicant name."""
        loan = self.service.create_loan(loan_input("  Alice Smith  "))
        self.assertEqual(loan.applicant_name, "Alice Smith")

    def test_create_writes_one_audit_entry(self):
        """Creation logs a create entry with no previous status."""
        loan = self.service.create_loan(loan_input())

        entries = self.audit.get_audit_log()
        self.assertEqual(len(entries), 1)
        entry = entries[0]
        self.assertEqual(entry.action_type, AuditActionType.CREATE)
        self.assertEqual(entry.loan_id, loan.id)
        self.assertEqual(entry.applicant_name, "Alice")
        self.assertIsNone(entry.previous_status)
        self.assertEqual(entry.new_status, LoanStatus.PENDING)
        self.assertEqual(entry.details, "New loan application created for $50,000 over 24 months")

    def test_empty_name_rejected(self):
        """An empty name fails with the name message and stores nothing."""
        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input("", amount=1000, term=12, rate=0.05))

        self.assertEqual(str(context.exception), "Applicant name is required")
        self.assertEqual(self.service.list_loans(), [])
        self.assertEqual(self.audit.get_audit_log(), [])

    def test_whitespace_name_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.create_loan(loan_input("   "))

    def test_non_positive_amount_rejected(self):
        for amount in (0, -100):
            with self.assertRaises(ValidationError) as context:
                self.service.create_loan(loan_input(amount=amount))
            self.assertEqual(context.exception.message, "Amount must be greater than 0")
            self.assertEqual(context.exception.field, "amount")

    def test_non_positive_term_rejected(self):
        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input(term=0))
        self.assertEqual(context.exception.message, "Term months must be greater than 0")

    def test_negative_rate_rejected(self):
        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input(rate=-0.01))
        self.assertEqual(context.exception.message, "Interest rate cannot be negative")

    def test_zero_rate_allowed(self):
        loan = self.service.create_loan(loan_input(rate=0))
        self.assertEqual(loan.interest_rate, 0)

    def test_first_failing_check_wins(self):
        """With every field invalid, the name check is reported."""
        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input("", amount=-1, term=-1, rate=-1))
        self.assertEqual(context.exception.message, "Applicant name is required")

        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input("Bob", amount=-1, term=-1, rate=-1))
        self.assertEqual(context.exception.message, "Amount must be greater than 0")

    def test_nan_and_infinite_values_rejected(self):
        """NaN slips past a plain comparison; it must fail its field check."""
        cases = [
            ({"amount": float('nan')}, "amount"),
            ({"amount": float('inf')}, "amount"),
            ({"term": float('nan')}, "term_months"),
            ({"rate": float('nan')}, "interest_rate"),
            ({"rate": float('inf')}, "interest_rate"),
        ]
        for overrides, field in cases:
            with self.subTest(field=field, overrides=overrides):
                with self.assertRaises(ValidationError) as context:
                    self.service.create_loan(loan_input(**overrides))
                self.assertEqual(context.exception.field, field)

        self.assertIsNone(self.storage.get(LOANS_STORAGE_KEY))
        self.assertEqual(self.audit.get_audit_log(), [])

    def test_non_numeric_values_rejected(self):
        """Raw form strings fail validation in field order, not with a TypeError."""
        cases = [
            ({"amount": "1000"}, "amount"),
            ({"amount": None}, "amount"),
            ({"amount": True}, "amount"),
            ({"term": "12"}, "term_months"),
            ({"rate": "0.05"}, "interest_rate"),
        ]
        for overrides, field in cases:
            with self.subTest(field=field, overrides=overrides):
                with self.assertRaises(ValidationError) as context:
                    self.service.create_loan(loan_input(**overrides))
                self.assertEqual(context.exception.field, field)

        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input(amount="x", term="y", rate="z"))
        self.assertEqual(context.exception.field, "amount")

    def test_non_string_name_rejected(self):
        with self.assertRaises(ValidationError) as context:
            self.service.create_loan(loan_input(None))
        self.assertEqual(context.exception.field, "applicant_name")


class TestMonthlyPayment(LoanServiceTestCase):

    def test_basic_case(self):
        """50,000 at 8% over 24 months is 2,250 a month."""
        loan = self.service.create_loan(loan_input())
        self.assertAlmostEqual(calculate_monthly_payment(loan), 2250.0, places=6)

    def test_zero_interest(self):
        loan = self.service.create_loan(loan_input(amount=12000, term=12, rate=0))
        self.assertEqual(self.service.calculate_monthly_payment(loan), 1000.0)

    def test_not_rounded(self):
        """The raw quotient is returned; rounding is left to display code."""
        loan = self.service.create_loan(loan_input(amount=1000, term=3, rate=0.1))
        self.assertEqual(calculate_monthly_payment(loan), (1000 * (1 + 0.1)) / 3)


class TestUpdateLoanStatus(LoanServiceTestCase):

    def setUp(self):
        super().setUp()
        self.loan = self.service.create_loan(loan_input())

    def test_approve(self):
        """Approval persists and logs pending -> approved."""
        updated = self.service.update_loan_status(self.loan.id, LoanStatus.APPROVED)

        self.assertEqual(updated.status, LoanStatus.APPROVED)
        self.assertEqual(self.service.get_loan(self.loan.id).status, LoanStatus.APPROVED)
        entry = self.audit.get_audit_log()[-1]
        self.assertEqual(entry.action_type, AuditActionType.APPROVE)
        self.assertEqual(entry.previous_status, LoanStatus.PENDING)
        self.assertEqual(entry.new_status, LoanStatus.APPROVED)
        self.assertEqual(entry.details, "Loan approved for Alice ($50,000)")

    def test_reject(self):
        self.service.reject_loan(self.loan.id)

        entry = self.audit.get_audit_log()[-1]
        self.assertEqual(entry.action_type, AuditActionType.REJECT)
        self.assertEqual(entry.new_status, LoanStatus.REJECTED)

    def test_re_decision_is_allowed_and_logged(self):
        """Deciding an already decided loan records the real previous status."""
        self.service.approve_loan(self.loan.id)
        self.service.reject_loan(self.loan.id)

        entries = self.audit.get_audit_log()
        self.assertEqual(len(entries), 3)
        self.assertEqual(entries[-1].previous_status, LoanStatus.APPROVED)
        self.assertEqual(entries[-1].new_status, LoanStatus.REJECTED)

    def test_unknown_loan(self):
        """A missing id raises LoanNotFoundError naming the id."""
        with self.assertRaises(LoanNotFoundError) as context:
            self.service.update_loan_status("missing", LoanStatus.APPROVED)

        self.assertIn("missing", str(context.exception))
        self.assertEqual(len(self.audit.get_audit_log()), 1)

    def test_pending_is_not_a_decision(self):
        with self.assertRaises(ValidationError):
            self.service.update_loan_status(self.loan.id, LoanStatus.PENDING)
        self.assertEqual(self.service.get_loan(self.loan.id).status, LoanStatus.PENDING)

    def test_other_loans_untouched(self):
        other = self.service.create_loan(loan_input("Bob"))
        self.service.approve_loan(self.loan.id)
        self.assertEqual(self.service.get_loan(other.id).status, LoanStatus.PENDING)


class TestAutoDecide(LoanServiceTestCase):

    def decide(self, amount, term):
        loan = self.service.create_loan(loan_input(amount=amount, term=term))
        decided = self.service.auto_decide_loan(loan.id)
        return decided, self.audit.get_audit_log()[-1]

    def test_boundary_is_inclusive(self):
        """Exactly 100,000 over exactly 60 months is approved."""
        decided, entry = self.decide(100000, 60)

        self.assertEqual(decided.status, LoanStatus.APPROVED)
        self.assertEqual(entry.action_type, AuditActionType.AUTO_DECIDE)
        self.assertEqual(entry.previous_status, LoanStatus.PENDING)
        self.assertEqual(entry.details, "Auto-decision: approved (amount ≤ $100,000 and term ≤ 60 months)")

    def test_amount_just_over_limit(self):
        decided, entry = self.decide(100000.01, 60)
        self.assertEqual(decided.status, LoanStatus.REJECTED)
        self.assertEqual(entry.details, "Auto-decision: rejected (amount > $100,000)")

    def test_term_just_over_limit(self):
        decided, entry = self.decide(100000, 61)
        self.assertEqual(decided.status, LoanStatus.REJECTED)
        self.assertEqual(entry.details, "Auto-decision: rejected (term > 60 months)")

    def test_both_limits_exceeded(self):
        """Both reasons are listed, joined with 'and'."""
        decided, entry = self.decide(150000, 72)

        self.assertEqual(decided.status, LoanStatus.REJECTED)
        self.assertIn("amount > $100,000", entry.details)
        self.assertIn("term > 60 months", entry.details)
        self.assertEqual(entry.details, "Auto-decision: rejected (amount > $100,000 and term > 60 months)")

    def test_applies_regardless_of_current_status(self):
        """A manually rejected loan within limits is auto-approved."""
        loan = self.service.create_loan(loan_input())
        self.service.reject_loan(loan.id)

        decided = self.service.auto_decide_loan(loan.id)

        self.assertEqual(decided.status, LoanStatus.APPROVED)
        self.assertEqual(self.audit.get_audit_log()[-1].previous_status, LoanStatus.REJECTED)

    def test_unknown_loan(self):
        with self.assertRaises(LoanNotFoundError):
            self.service.auto_decide_loan("nope")


class TestDeleteLoan(LoanServiceTestCase):

    def test_delete_removes_and_logs(self):
        """Deletion removes the record and keeps its id in the audit log."""
        loan = self.service.create_loan(loan_input("Alice Smith"))
        self.service.approve_loan(loan.id)

        removed = self.service.delete_loan(loan.id)

        self.assertEqual(removed.id, loan.id)
        self.assertEqual(self.service.list_loans(), [])
        entry = self.audit.get_audit_log()[-1]
        self.assertEqual(entry.action_type, AuditActionType.DELETE)
        self.assertEqual(entry.loan_id, loan.id)
        self.assertEqual(entry.previous_status, LoanStatus.APPROVED)
        self.assertIsNone(entry.new_status)
        self.assertEqual(entry.details, "Loan application deleted for Alice Smith ($50,000, was approved)")

    def test_deletes_correct_loan_and_keeps_order(self):
        a = self.service.create_loan(loan_input("A"))
        b = self.service.create_loan(loan_input("B"))
        c = self.service.create_loan(loan_input("C"))

        self.service.delete_loan(b.id)

        self.assertEqual([loan.id for loan in self.service.list_loans()], [a.id, c.id])

    def test_unknown_loan(self):
        self.service.create_loan(loan_input())
        with self.assertRaises(LoanNotFoundError):
            self.service.delete_loan("missing")
        self.assertEqual(len(self.service.list_loans()), 1)
        self.assertEqual(len(self.audit.get_audit_log()), 1)


class TestAuditPerMutation(LoanServiceTestCase):

    def test_each_mutation_appends_exactly_one_entry(self):
        """Every successful mutation adds one entry matching its transition."""
        loan = self.service.create_loan(loan_input())
        steps = [
            (lambda: self.service.approve_loan(loan.id), LoanStatus.PENDING, LoanStatus.APPROVED),
            (lambda: self.service.auto_decide_loan(loan.id), LoanStatus.APPROVED, LoanStatus.APPROVED),
            (lambda: self.service.reject_loan(loan.id), LoanStatus.APPROVED, LoanStatus.REJECTED),
            (lambda: self.service.delete_loan(loan.id), LoanStatus.REJECTED, None),
        ]
        for step, previous, new in steps:
            count = len(self.audit.get_audit_log())
            step()
            entries = self.audit.get_audit_log()
            self.assertEqual(len(entries), count + 1)
            self.assertEqual(entries[-1].loan_id, loan.id)
            self.assertEqual(entries[-1].previous_status, previous)
            self.assertEqual(entries[-1].new_status, new)

    def test_default_audit_service_shares_storage(self):
        """Without an explicit audit service, entries land in the same store."""
        service = LoanService(self.storage)
        service.create_loan(loan_input())
        self.assertEqual(len(AuditLogService(self.storage).get_audit_log()), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
