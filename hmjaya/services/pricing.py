# hmjaya/services/pricing.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Iterable

from hmjaya.models import DiscountType

PRICE_STEP = Decimal("1000")


def _dec(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def round_money(value) -> float:
    """Half-up rounding to whole rupiah."""
    return float(_dec(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_selling_price(base_price, tax_percentage) -> float:
    """
    Selling price = base price plus tax, rounded UP to the next 1000.

        calculate_selling_price(10000, 11) -> 12000.0
        calculate_selling_price(9000, 11)  -> 10000.0
    """
    base = _dec(base_price)
    if base <= 0:
        return 0.0
    with_tax = base * (1 + _dec(tax_percentage) / 100)
    steps = (with_tax / PRICE_STEP).to_integral_value(rounding=ROUND_CEILING)
    return float(steps * PRICE_STEP)


def _coerce_discount_type(discount_type) -> DiscountType:
    if isinstance(discount_type, DiscountType):
        return discount_type
    try:
        return DiscountType((discount_type or DiscountType.AMOUNT.value).strip().upper())
    except (AttributeError, ValueError):
        return DiscountType.AMOUNT


def discount_amount(base, discount, discount_type=DiscountType.AMOUNT) -> float:
    d = _dec(discount)
    if d <= 0:
        return 0.0
    if _coerce_discount_type(discount_type) is DiscountType.PERCENTAGE:
        return round_money(_dec(base) * d / 100)
    return round_money(d)


def line_total(quantity, price, discount=0, discount_type=DiscountType.AMOUNT) -> float:
    gross = _dec(quantity) * _dec(price)
    total = gross - _dec(discount_amount(gross, discount, discount_type))
    return round_money(max(total, Decimal("0")))


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: float
    discount: float
    tax_amount: float
    shipping_cost: float
    total_amount: float


def invoice_totals(
    line_totals: Iterable[float],
    *,
    discount=0,
    discount_type=DiscountType.AMOUNT,
    tax_percentage=0,
    shipping_cost=0,
) -> InvoiceTotals:
    subtotal = sum((_dec(v) for v in line_totals), Decimal("0"))
    disc = _dec(discount_amount(subtotal, discount, discount_type))
    disc = min(disc, subtotal)
    taxable = subtotal - disc
    tax = _dec(round_money(taxable * _dec(tax_percentage) / 100))
    shipping = _dec(shipping_cost)
    return InvoiceTotals(
        subtotal=round_money(subtotal),
        discount=float(disc),
        tax_amount=float(tax),
        shipping_cost=round_money(shipping),
        total_amount=round_money(taxable + tax + shipping),
    )
