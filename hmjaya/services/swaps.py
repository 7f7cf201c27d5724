# hmjaya/services/swaps.py
"""
Tukar guling: the customer hands back invoiced goods and takes other goods in
exchange. Returned goods are valued at cost, replacements at selling price, and
a group is only accepted when the replacements are worth at least as much.
"""
from __future__ import annotations

import logging
from datetime import date

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import (
    DiscountType,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
    Product,
    StockMovementType,
    Swap,
    SwapItem,
    SwapItemKind,
    SwapStatus,
)
from hmjaya.services import get_or_raise
from hmjaya.services.invoices import recalculate_invoice_totals
from hmjaya.services.payments import recalculate_invoice_payments
from hmjaya.services.pricing import round_money
from hmjaya.services.stock import move_stock
from hmjaya.utils.codes import generate_code
from hmjaya.utils.parsers import clean_str, parse_date, parse_int

logger = logging.getLogger(__name__)

CLOSED_STATUSES = (InvoiceStatus.CANCELLED, InvoiceStatus.COMPLETED)


def _replacement_value(product: Product) -> float:
    return float(product.selling_price or product.price or product.cost or 0.0)


def _read_lines(raw_lines, label: str) -> list[tuple[Product, int]]:
    lines = []
    for raw in raw_lines or []:
        product = get_or_raise(Product, parse_int(raw.get("product_id")), f"{label} product")
        qty = parse_int(raw.get("quantity"))
        if not qty or qty <= 0:
            raise ActionError(f"Quantity for {product.name} must be greater than zero")
        lines.append((product, qty))
    return lines


def validate_swap_groups(groups) -> dict:
    """
    Value every group and reject the first one whose replacements are worth
    less than the goods handed back. Returns the valued groups and the total difference.
    """
    if not groups:
        raise ActionError("A swap needs at least one group of items")

    valued = []
    for idx, group in enumerate(groups, start=1):
        old = _read_lines(group.get("old_items"), "Returned")
        new = _read_lines(group.get("replacement_items"), "Replacement")
        if not old or not new:
            raise ActionError(f"Swap group {idx} needs both returned and replacement items")

        old_total = round_money(sum(float(p.cost or 0.0) * q for p, q in old))
        new_total = round_money(sum(_replacement_value(p) * q for p, q in new))
        if new_total < old_total:
            raise ActionError(
                f"Total replacement value ({new_total:,.0f}) must be equal to or greater "
                f"than the total value of the returned items ({old_total:,.0f})"
            )
        valued.append(
            {
                "group_no": idx,
                "old_items": old,
                "replacement_items": new,
                "old_total": old_total,
                "replacement_total": new_total,
                "difference": round_money(new_total - old_total),
                "notes": clean_str(group.get("notes")),
            }
        )

    return {
        "groups": valued,
        "total_difference": round_money(sum(g["difference"] for g in valued)),
    }


# =========================================================
# Invoice line helpers
# =========================================================
def _invoiced_quantity(invoice: Invoice, product_id: int) -> int:
    return sum(i.quantity for i in invoice.items if i.product_id == product_id)


def _take_from_lines(invoice: Invoice, product: Product, qty: int, price: float | None = None) -> list[dict]:
    """
    Remove `qty` units of `product` from the invoice lines, undiscounted lines first.

    Returns one slice per line touched: quantity, price and the part of the line
    discount that left with those units. An AMOUNT discount is split pro rata
    between the units taken and the units kept; a PERCENTAGE discount stays on both.
    `price` limits the search to lines sold at that price.
    """
    lines = [
        i for i in invoice.items
        if i.product_id == product.id and (price is None or i.price == price)
    ]
    if sum(i.quantity for i in lines) < qty:
        raise ActionError(f"Cannot swap more {product.name} than was invoiced")

    slices = []
    remaining = qty
    for item in sorted(lines, key=lambda i: 1 if i.discount else 0):
        if remaining <= 0:
            break
        take = min(item.quantity, remaining)
        discount = item.discount or 0.0
        if item.discount_type is DiscountType.AMOUNT:
            if take < item.quantity:
                discount = round_money(discount * take / item.quantity)
            item.discount = round_money((item.discount or 0.0) - discount)
        slices.append(
            {
                "quantity": take,
                "price": float(item.price or 0.0),
                "discount": discount,
                "discount_type": item.discount_type,
            }
        )
        item.quantity -= take
        remaining -= take
        if item.quantity == 0:
            invoice.items.remove(item)
    return slices


def _add_to_lines(
    invoice: Invoice,
    product: Product,
    qty: int,
    price: float,
    discount: float = 0.0,
    discount_type: DiscountType = DiscountType.AMOUNT,
) -> None:
    """
    Put units back on the invoice. Undiscounted units only join undiscounted
    lines; discounted AMOUNT units add their discount to the line they join.
    """
    for item in invoice.items:
        if item.product_id != product.id or item.price != price or item.discount_type is not discount_type:
            continue
        if discount_type is DiscountType.PERCENTAGE and item.discount == discount:
            item.quantity += qty
            return
        if discount_type is DiscountType.AMOUNT and (discount or not item.discount):
            item.quantity += qty
            item.discount = round_money((item.discount or 0.0) + discount)
            return
    invoice.items.append(
        InvoiceItem(
            product=product,
            quantity=qty,
            price=price,
            discount=discount,
            discount_type=discount_type,
            total_price=0.0,
        )
    )


def _ensure_swappable(invoice: Invoice) -> None:
    if invoice.status in CLOSED_STATUSES:
        raise ActionError(f"Cannot swap items on a {invoice.status.value.lower()} invoice")
    if invoice.type is not InvoiceType.PRODUCT:
        raise ActionError("Only PRODUCT invoices can have swaps")


# =========================================================
# Actions
# =========================================================
def list_swaps(invoice_id: int | None = None):
    qry = Swap.query
    if invoice_id:
        qry = qry.filter(Swap.invoice_id == invoice_id)
    return qry.order_by(Swap.swap_date.desc(), Swap.id.desc()).all()


def create_swap(invoice: Invoice, data: dict, user=None) -> Swap:
    _ensure_swappable(invoice)
    result = validate_swap_groups(data.get("groups"))

    # Returned quantities are checked against the invoice as a whole
    returned: dict[int, int] = {}
    for group in result["groups"]:
        for product, qty in group["old_items"]:
            returned[product.id] = returned.get(product.id, 0) + qty
    for product_id, qty in returned.items():
        if _invoiced_quantity(invoice, product_id) < qty:
            product = db.session.get(Product, product_id)
            raise ActionError(f"Cannot swap more {product.name} than was invoiced")

    swap_date = parse_date(data.get("swap_date")) or date.today()
    swap = Swap(
        code=generate_code(Swap, swap_date),
        swap_date=swap_date,
        deadline=parse_date(data.get("deadline")),
        invoice=invoice,
        status=SwapStatus.COMPLETED,
        base_total=invoice.total_amount,
        difference=result["total_difference"],
        notes=clean_str(data.get("notes")),
        created_by_id=getattr(user, "id", None),
    )
    db.session.add(swap)

    moves_stock = invoice.stock_committed
    for group in result["groups"]:
        for product, qty in group["old_items"]:
            if moves_stock:
                move_stock(product, StockMovementType.SWAP_IN, qty, reference=swap.code, user=user)
            for taken in _take_from_lines(invoice, product, qty):
                swap.items.append(
                    SwapItem(
                        group_no=group["group_no"], kind=SwapItemKind.OLD, product=product,
                        quantity=taken["quantity"], unit_value=float(product.cost or 0.0),
                        invoice_price=taken["price"], discount=taken["discount"],
                        discount_type=taken["discount_type"],
                    )
                )
        for product, qty in group["replacement_items"]:
            price = _replacement_value(product)
            _add_to_lines(invoice, product, qty, price)
            if moves_stock:
                move_stock(product, StockMovementType.SWAP_OUT, qty, reference=swap.code, user=user)
            swap.items.append(
                SwapItem(
                    group_no=group["group_no"], kind=SwapItemKind.REPLACEMENT, product=product,
                    quantity=qty, unit_value=price, invoice_price=price,
                )
            )

    if swap.deadline is not None:
        if swap.deadline < invoice.invoice_date:
            raise ActionError("Swap deadline cannot be before the invoice date")
        invoice.due_date = swap.deadline

    recalculate_invoice_totals(invoice)
    recalculate_invoice_payments(invoice)
    logger.info(
        "Swap %s on invoice %s: total %.0f -> %.0f",
        swap.code, invoice.code, swap.base_total, invoice.total_amount,
    )
    return swap


def delete_swap(swap: Swap, user=None) -> Swap:
    """Undo the swap on its invoice and mark it CANCELLED."""
    if swap.status is SwapStatus.CANCELLED:
        raise ActionError("Swap has already been cancelled")
    invoice = swap.invoice
    _ensure_swappable(invoice)

    moves_stock = invoice.stock_committed
    for item in swap.items:
        if item.kind is SwapItemKind.REPLACEMENT:
            _take_from_lines(invoice, item.product, item.quantity, price=item.invoice_price)
            if moves_stock:
                move_stock(item.product, StockMovementType.SWAP_IN, item.quantity,
                           reference=swap.code, user=user, notes="Swap cancelled")
    for item in swap.items:
        if item.kind is SwapItemKind.OLD:
            _add_to_lines(
                invoice, item.product, item.quantity, item.invoice_price,
                discount=item.discount or 0.0, discount_type=item.discount_type,
            )
            if moves_stock:
                move_stock(item.product, StockMovementType.SWAP_OUT, item.quantity,
                           reference=swap.code, user=user, notes="Swap cancelled")

    swap.status = SwapStatus.CANCELLED
    recalculate_invoice_totals(invoice)
    recalculate_invoice_payments(invoice)
    logger.info("Swap %s cancelled", swap.code)
    return swap
