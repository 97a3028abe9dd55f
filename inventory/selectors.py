"""Selectors for the stock ledger."""

from collections import defaultdict

from .models import StockLedgerEntry


def unreversed_sales_for_order(order_id: int) -> list[tuple[int, int]]:
    """``(item_id, quantity)`` for every sale entry of an order not yet offset by a return.

    Returns of an item are matched against its sales oldest first, so each
    sale comes back at most once and a partial return leaves only the
    remainder outstanding.
    """
    entries = (
        StockLedgerEntry.objects.filter(
            order_id=order_id, movement_type__in=(StockLedgerEntry.TYPE_SALE, StockLedgerEntry.TYPE_RETURN)
        )
        .order_by("id")
        .values_list("item_id", "movement_type", "quantity")
    )
    returned = defaultdict(int)
    sales = []
    for item_id, movement_type, quantity in entries:
        if movement_type == StockLedgerEntry.TYPE_SALE:
            sales.append((item_id, -quantity))
        else:
            returned[item_id] += quantity

    pending = []
    for item_id, quantity in sales:
        covered = max(0, min(quantity, returned[item_id]))
        returned[item_id] -= covered
        if quantity > covered:
            pending.append((item_id, quantity - covered))
    return pending


def ledger_for_item(item_id: int, limit: int = 50):
    return list(
        StockLedgerEntry.objects.filter(item_id=item_id)
        .order_by("-created_at", "-id")
        .values("id", "movement_type", "quantity", "new_quantity", "order_id", "reason", "created_at")[:limit]
    )
