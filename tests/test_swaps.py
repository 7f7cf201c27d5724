"""
Tukar guling (swaps).

Fixture products at 11% tax:
    small  cost  9.000  selling 12.000
    large  cost 18.000  selling 23.000
"""

from __future__ import annotations

import pytest

from hmjaya.errors import ActionError
from hmjaya.models import StockMovement, StockMovementType, SwapItemKind, SwapStatus
from hmjaya.services.invoices import cancel_invoice
from hmjaya.services.swaps import create_swap, delete_swap, list_swaps, validate_swap_groups


def _group(old, new):
    return {
        "old_items": [{"product_id": p.id, "quantity": q} for p, q in old],
        "replacement_items": [{"product_id": p.id, "quantity": q} for p, q in new],
    }


# =============================================================================
# Valuation
# =============================================================================


class TestValidateSwapGroups:

    def test_replacement_worth_more_is_accepted(self, db, products):
        small, large = products
        result = validate_swap_groups([_group([(small, 2)], [(large, 1)])])

        group = result["groups"][0]
        assert group["old_total"] == 18000.0
        assert group["replacement_total"] == 23000.0
        assert group["difference"] == 5000.0
        assert result["total_difference"] == 5000.0

    def test_replacement_worth_less_is_refused(self, db, products):
        small, large = products
        with pytest.raises(ActionError, match="must be equal to or greater"):
            validate_swap_groups([_group([(large, 1)], [(small, 1)])])

    def test_equal_value_is_accepted(self, db, products):
        small, _ = products
        # 4 x 9.000 returned against 3 x 12.000
        result = validate_swap_groups([_group([(small, 4)], [(small, 3)])])
        assert result["total_difference"] == 0.0

    def test_every_group_is_checked(self, db, products):
        small, large = products
        groups = [_group([(small, 1)], [(large, 1)]), _group([(large, 2)], [(small, 1)])]
        with pytest.raises(ActionError, match="must be equal to or greater"):
            validate_swap_groups(groups)

    def test_group_needs_both_sides(self, db, products):
        small, _ = products
        with pytest.raises(ActionError, match="needs both returned and replacement items"):
            validate_swap_groups([_group([(small, 1)], [])])

    def test_empty_swap(self, db):
        with pytest.raises(ActionError, match="at least one group"):
            validate_swap_groups([])


# =============================================================================
# Applying a swap to an invoice
# =============================================================================


class TestCreateSwap:

    def test_swap_rewrites_invoice_lines_and_stock(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice()  # 2 x small @ 12.000 = 24.000, stock small 48

        swap = create_swap(invoice, {"groups": [_group([(small, 2)], [(large, 1)])]}, owner)
        db.session.commit()

        assert swap.status is SwapStatus.COMPLETED
        assert swap.code.startswith("TG-")
        assert swap.base_total == 24000.0
        assert swap.difference == 5000.0
        assert [(i.product_id, i.quantity, i.price) for i in invoice.items] == [(large.id, 1, 23000.0)]
        assert invoice.total_amount == 23000.0
        assert invoice.remaining_amount == 23000.0

        assert small.current_stock == 50
        assert large.current_stock == 29
        kinds = sorted(m.type.value for m in StockMovement.query.filter_by(reference=swap.code))
        assert kinds == [StockMovementType.SWAP_IN.value, StockMovementType.SWAP_OUT.value]

        old = [i for i in swap.items if i.kind is SwapItemKind.OLD][0]
        assert old.unit_value == 9000.0
        assert old.invoice_price == 12000.0

    def test_cannot_return_more_than_invoiced(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice()
        with pytest.raises(ActionError, match="Cannot swap more"):
            create_swap(invoice, {"groups": [_group([(small, 3)], [(large, 2)])]}, owner)

    def test_deadline_moves_due_date(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice(invoice_date="2026-05-01")
        create_swap(
            invoice,
            {"groups": [_group([(small, 1)], [(large, 1)])], "deadline": "2026-06-15"},
            owner,
        )
        assert invoice.due_date.isoformat() == "2026-06-15"

    def test_cancelled_invoice_cannot_be_swapped(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice()
        cancel_invoice(invoice, "Salah input", owner)
        with pytest.raises(ActionError, match="cancelled invoice"):
            create_swap(invoice, {"groups": [_group([(small, 1)], [(large, 1)])]}, owner)


class TestDeleteSwap:

    def test_delete_reverses_the_swap(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice()
        swap = create_swap(invoice, {"groups": [_group([(small, 2)], [(large, 1)])]}, owner)
        db.session.commit()

        delete_swap(swap, owner)
        db.session.commit()

        assert swap.status is SwapStatus.CANCELLED
        assert [(i.product_id, i.quantity, i.price) for i in invoice.items] == [(small.id, 2, 12000.0)]
        assert invoice.total_amount == 24000.0
        assert small.current_stock == 48
        assert large.current_stock == 30
        assert list_swaps(invoice.id) == [swap]

    def test_cannot_cancel_twice(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice()
        swap = create_swap(invoice, {"groups": [_group([(small, 1)], [(large, 1)])]}, owner)
        delete_swap(swap, owner)
        with pytest.raises(ActionError, match="already been cancelled"):
            delete_swap(swap, owner)


class TestSwapKeepsLineDiscounts:

    def _lines(self, invoice):
        return sorted(
            (i.product_id, i.quantity, i.price, i.discount, i.discount_type.value) for i in invoice.items
        )

    def test_whole_discounted_line_comes_back(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice(items=[{"product_id": small.id, "quantity": 2, "discount": 5000}])
        assert invoice.total_amount == 19000.0

        swap = create_swap(invoice, {"groups": [_group([(small, 2)], [(large, 1)])]}, owner)
        db.session.commit()
        old = [i for i in swap.items if i.kind is SwapItemKind.OLD]
        assert [(i.quantity, i.discount) for i in old] == [(2, 5000.0)]
        assert invoice.total_amount == 23000.0

        delete_swap(swap, owner)
        db.session.commit()
        assert self._lines(invoice) == [(small.id, 2, 12000.0, 5000.0, "AMOUNT")]
        assert invoice.total_amount == 19000.0

    def test_amount_discount_is_split_when_part_of_a_line_goes(self, db, make_invoice, products, owner):
        small, large = products
        # 4 x 12.000 - 6.000 = 42.000
        invoice = make_invoice(items=[{"product_id": small.id, "quantity": 4, "discount": 6000}])

        swap = create_swap(invoice, {"groups": [_group([(small, 1)], [(large, 1)])]}, owner)
        db.session.commit()
        assert self._lines(invoice) == sorted(
            [(small.id, 3, 12000.0, 4500.0, "AMOUNT"), (large.id, 1, 23000.0, 0.0, "AMOUNT")]
        )
        # 3 x 12.000 - 4.500 + 23.000
        assert invoice.total_amount == 54500.0

        delete_swap(swap, owner)
        db.session.commit()
        assert self._lines(invoice) == [(small.id, 4, 12000.0, 6000.0, "AMOUNT")]
        assert invoice.total_amount == 42000.0

    def test_percentage_discount_stays_on_both_parts(self, db, make_invoice, products, owner):
        small, large = products
        invoice = make_invoice(
            items=[{"product_id": small.id, "quantity": 2, "discount": 10, "discount_type": "PERCENTAGE"}]
        )
        assert invoice.total_amount == 21600.0

        swap = create_swap(invoice, {"groups": [_group([(small, 1)], [(large, 1)])]}, owner)
        db.session.commit()
        # 12.000 - 10% + 23.000
        assert invoice.total_amount == 33800.0

        delete_swap(swap, owner)
        db.session.commit()
        assert self._lines(invoice) == [(small.id, 2, 12000.0, 10.0, "PERCENTAGE")]
        assert invoice.total_amount == 21600.0
