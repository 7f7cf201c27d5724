# hmjaya/services/stock.py
from __future__ import annotations

import logging

from hmjaya.errors import ActionError
from hmjaya.extensions import db
from hmjaya.models import StockMovement, StockMovementType

logger = logging.getLogger(__name__)

INBOUND = {StockMovementType.RETURN_IN, StockMovementType.SWAP_IN}
OUTBOUND = {StockMovementType.SALES_OUT, StockMovementType.SWAP_OUT}


def move_stock(product, movement_type: StockMovementType, quantity: int, *, reference=None, user=None, notes=None):
    """
    Apply a stock movement to `product` and record it.
    ADJUSTMENT takes a signed quantity; every other type takes a positive one.
    """
    qty = int(quantity or 0)
    if movement_type is StockMovementType.ADJUSTMENT:
        delta = qty
    else:
        if qty <= 0:
            raise ActionError("Stock movement quantity must be greater than zero")
        delta = qty if movement_type in INBOUND else -qty

    previous = int(product.current_stock or 0)
    new_stock = previous + delta
    if new_stock < 0:
        raise ActionError(
            f"Insufficient stock for {product.name}. Available: {previous}, requested: {abs(delta)}"
        )

    product.current_stock = new_stock
    movement = StockMovement(
        product=product,
        type=movement_type,
        quantity=abs(delta),
        previous_stock=previous,
        new_stock=new_stock,
        reference=reference,
        notes=notes,
        user_id=getattr(user, "id", None),
    )
    db.session.add(movement)
    return movement


def book_invoice_stock(invoice, user=None) -> None:
    """Take the invoiced goods out of stock (once)."""
    if invoice.stock_committed:
        return
    for item in invoice.items:
        move_stock(item.product, StockMovementType.SALES_OUT, item.quantity, reference=invoice.code, user=user)
    invoice.stock_committed = True


def release_invoice_stock(invoice, user=None, notes=None) -> None:
    """Put the invoiced goods back into stock (once)."""
    if not invoice.stock_committed:
        return
    for item in invoice.items:
        move_stock(
            item.product, StockMovementType.RETURN_IN, item.quantity,
            reference=invoice.code, user=user, notes=notes,
        )
    invoice.stock_committed = False
    logger.info("Stock released for invoice %s", invoice.code)
