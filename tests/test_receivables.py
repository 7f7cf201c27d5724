"""
Receivables aging and the revenue summary.
"""

from __future__ import annotations

from datetime import date

import pytest

from hmjaya.services.invoices import cancel_invoice, mark_invoice_sent
from hmjaya.services.payments import record_payment
from hmjaya.services.receivables import (
    CURRENT,
    OVERDUE_1_30,
    OVERDUE_31_60,
    OVERDUE_60_PLUS,
    classify_aging,
    receivables_report,
    revenue_summary,
)

DUE = date(2026, 3, 1)


class TestClassifyAging:

    @pytest.mark.parametrize(
        "today, expected",
        [
            (date(2026, 2, 28), (0, CURRENT)),
            (date(2026, 3, 1), (0, CURRENT)),
            (date(2026, 3, 2), (1, OVERDUE_1_30)),
            (date(2026, 3, 31), (30, OVERDUE_1_30)),
            (date(2026, 4, 1), (31, OVERDUE_31_60)),
            (date(2026, 4, 30), (60, OVERDUE_31_60)),
            (date(2026, 5, 1), (61, OVERDUE_60_PLUS)),
        ],
    )
    def test_buckets(self, today, expected):
        assert classify_aging(DUE, today) == expected

    def test_no_due_date_is_current(self):
        assert classify_aging(None, date(2026, 3, 1)) == (0, CURRENT)


class TestReceivablesReport:

    @pytest.fixture
    def invoices(self, db, make_invoice):
        """Three unpaid invoices: due 2026-03-01, 2026-02-01 and 2026-06-01."""
        made = [
            make_invoice(invoice_date="2026-01-30", due_date="2026-03-01"),
            make_invoice(invoice_date="2026-01-02", due_date="2026-02-01"),
            make_invoice(invoice_date="2026-05-02", due_date="2026-06-01"),
        ]
        for inv in made:
            mark_invoice_sent(inv)
        db.session.commit()
        return made

    def test_rows_are_bucketed(self, invoices):
        report = receivables_report(today=date(2026, 3, 31))
        by_code = {r["code"]: r for r in report["receivables"]}

        assert by_code[invoices[0].code]["category"] == OVERDUE_1_30
        assert by_code[invoices[0].code]["days_overdue"] == 30
        assert by_code[invoices[1].code]["category"] == OVERDUE_31_60
        assert by_code[invoices[1].code]["days_overdue"] == 58
        assert by_code[invoices[2].code]["category"] == CURRENT

    def test_stats(self, invoices):
        stats = receivables_report(today=date(2026, 3, 31))["stats"]

        assert stats["total_receivables"] == 3
        assert stats["total_amount"] == 72000.0
        assert stats["current_amount"] == 24000.0
        assert stats["overdue_1_to_30_amount"] == 24000.0
        assert stats["overdue_31_to_60_amount"] == 24000.0
        assert stats["overdue_60_plus_amount"] == 0.0
        # Every listed row counts, CURRENT ones at 0 days: (30 + 58 + 0) / 3
        assert stats["average_days_overdue"] == pytest.approx(88 / 3)

    def test_average_counts_current_rows_as_zero(self, db, make_invoice):
        late = make_invoice(invoice_date="2026-05-20", due_date="2026-06-20")
        early = make_invoice(invoice_date="2026-06-25", due_date="2026-07-25")
        for inv in (late, early):
            mark_invoice_sent(inv)
        db.session.commit()

        stats = receivables_report(today=date(2026, 6, 30))["stats"]
        assert stats["total_receivables"] == 2
        assert stats["average_days_overdue"] == 5

    def test_average_follows_category_filter(self, invoices):
        stats = receivables_report(category="CURRENT", today=date(2026, 3, 31))["stats"]
        assert stats["total_receivables"] == 1
        assert stats["average_days_overdue"] == 0

    def test_category_filter(self, invoices):
        report = receivables_report(category="overdue_31_60", today=date(2026, 3, 31))
        assert [r["code"] for r in report["receivables"]] == [invoices[1].code]

    def test_period_filter(self, invoices):
        report = receivables_report(year=2026, month=5, today=date(2026, 3, 31))
        assert [r["code"] for r in report["receivables"]] == [invoices[2].code]

    def test_paid_and_cancelled_invoices_drop_out(self, db, invoices, owner):
        record_payment(invoices[0], {"amount": 24000, "method": "CASH"}, owner)
        cancel_invoice(invoices[1], "Salah input", owner)
        db.session.commit()

        report = receivables_report(today=date(2026, 3, 31))
        assert [r["code"] for r in report["receivables"]] == [invoices[2].code]

    def test_partial_payment_reduces_outstanding(self, db, invoices, owner):
        record_payment(invoices[2], {"amount": 4000, "method": "CASH"}, owner)
        db.session.commit()

        row = next(
            r for r in receivables_report(today=date(2026, 3, 31))["receivables"]
            if r["code"] == invoices[2].code
        )
        assert row["remaining_amount"] == 20000.0


class TestRevenueSummary:

    def test_invoiced_and_collected_per_month(self, db, make_invoice, owner):
        jan = make_invoice(invoice_date="2026-01-10")
        make_invoice(invoice_date="2026-02-10")
        cancelled = make_invoice(invoice_date="2026-02-11")
        cancel_invoice(cancelled, "Salah input", owner)
        record_payment(jan, {"amount": 10000, "method": "CASH", "payment_date": "2026-02-05"}, owner)
        db.session.commit()

        summary = revenue_summary(2026)
        months = {m["month"]: m for m in summary["months"]}

        assert months[1]["invoiced"] == 24000.0
        assert months[2]["invoiced"] == 24000.0
        assert months[2]["invoice_count"] == 1
        assert months[2]["collected"] == 10000.0
        assert summary["total_invoiced"] == 48000.0
        assert summary["total_collected"] == 10000.0
