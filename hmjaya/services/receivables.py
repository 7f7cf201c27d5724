# hmjaya/services/receivables.py
from __future__ import annotations

import calendar
from datetime import date

from hmjaya.extensions import db
from hmjaya.models import Invoice, InvoiceStatus, PaidStatus, Payment, PaymentStatus

CURRENT = "CURRENT"
OVERDUE_1_30 = "OVERDUE_1_30"
OVERDUE_31_60 = "OVERDUE_31_60"
OVERDUE_60_PLUS = "OVERDUE_60_PLUS"
AGING_CATEGORIES = (CURRENT, OVERDUE_1_30, OVERDUE_31_60, OVERDUE_60_PLUS)


def classify_aging(due_date: date | None, today: date | None = None) -> tuple[int, str]:
    """Return (days overdue, aging bucket) for a due date."""
    today = today or date.today()
    if due_date is None or due_date >= today:
        return 0, CURRENT

    days = (today - due_date).days
    if days <= 30:
        return days, OVERDUE_1_30
    if days <= 60:
        return days, OVERDUE_31_60
    return days, OVERDUE_60_PLUS


def _period_bounds(year: int | None, month: int | None) -> tuple[date, date] | None:
    if not year:
        return None
    if month and 1 <= month <= 12:
        last = calendar.monthrange(year, month)[1]
        return date(year, month, 1), date(year, month, last)
    return date(year, 1, 1), date(year, 12, 31)


def outstanding_amount(invoice: Invoice) -> float:
    remaining = invoice.remaining_amount or 0.0
    # Older rows were saved UNPAID with remaining 0
    if remaining == 0 and invoice.payment_status is PaymentStatus.UNPAID:
        remaining = (invoice.total_amount or 0.0) - (invoice.paid_amount or 0.0)
    return remaining


def receivables_report(
    year: int | None = None,
    month: int | None = None,
    category: str | None = None,
    today: date | None = None,
) -> dict:
    today = today or date.today()

    qry = Invoice.query.filter(
        Invoice.payment_status == PaymentStatus.UNPAID,
        Invoice.status != InvoiceStatus.CANCELLED,
        Invoice.customer_id.isnot(None),
    )
    bounds = _period_bounds(year, month)
    if bounds:
        qry = qry.filter(Invoice.invoice_date.between(*bounds))

    invoices = qry.order_by(
        db.case((Invoice.due_date.is_(None), 1), else_=0),
        Invoice.due_date.asc(),
        Invoice.invoice_date.desc(),
    ).all()

    rows = []
    for inv in invoices:
        remaining = outstanding_amount(inv)
        if remaining <= 0:
            continue
        days, bucket = classify_aging(inv.due_date, today)
        rows.append(
            {
                "id": inv.id,
                "code": inv.code,
                "customer_name": inv.customer.name if inv.customer else "No Customer",
                "customer_code": inv.customer.code if inv.customer else "",
                "invoice_date": inv.invoice_date.isoformat(),
                "due_date": inv.due_date.isoformat() if inv.due_date else None,
                "total_amount": inv.total_amount,
                "paid_amount": inv.paid_amount,
                "remaining_amount": remaining,
                "payment_status": inv.payment_status.value,
                "days_overdue": days,
                "category": bucket,
            }
        )

    category = (category or "").strip().upper()
    if category and category != "ALL":
        rows = [r for r in rows if r["category"] == category]

    def _sum(bucket: str | None = None) -> float:
        return sum(r["remaining_amount"] for r in rows if bucket is None or r["category"] == bucket)

    stats = {
        "total_receivables": len(rows),
        "total_amount": _sum(),
        "current_amount": _sum(CURRENT),
        "overdue_1_to_30_amount": _sum(OVERDUE_1_30),
        "overdue_31_to_60_amount": _sum(OVERDUE_31_60),
        "overdue_60_plus_amount": _sum(OVERDUE_60_PLUS),
        # CURRENT rows count as 0 days
        "average_days_overdue": sum(r["days_overdue"] for r in rows) / len(rows) if rows else 0,
    }
    return {"receivables": rows, "stats": stats}


def revenue_summary(year: int | None = None) -> dict:
    """Invoiced and collected amounts per month of `year`."""
    year = year or date.today().year
    start, end = _period_bounds(year, None)

    months = [
        {"month": m, "invoiced": 0.0, "collected": 0.0, "invoice_count": 0}
        for m in range(1, 13)
    ]

    invoices = Invoice.query.filter(
        Invoice.status != InvoiceStatus.CANCELLED,
        Invoice.invoice_date.between(start, end),
    ).all()
    for inv in invoices:
        row = months[inv.invoice_date.month - 1]
        row["invoiced"] += inv.total_amount or 0.0
        row["invoice_count"] += 1

    payments = Payment.query.filter(
        Payment.status.in_([PaidStatus.PENDING, PaidStatus.CLEARED]),
        Payment.payment_date.between(start, end),
    ).all()
    for p in payments:
        months[p.payment_date.month - 1]["collected"] += p.amount or 0.0

    return {
        "year": year,
        "months": months,
        "total_invoiced": sum(m["invoiced"] for m in months),
        "total_collected": sum(m["collected"] for m in months),
    }
