"""Inventory services (single-location): ledger-backed stock movements."""

import logging
from typing import Optional

from catalog.models import Item
from common.errors import CommerceError, DependencyUnavailable
from django.db import DatabaseError, transaction
from django.db.models import F

from .models import StockLedgerEntry

logger = logging.getLogger("storefront.inventory")


class MovementError(CommerceError):
    kind = "stock_movement"


def record_movement(
    *,
    tenant_id: int,
    item_id: int,
    quantity: int,
    movement_type: str,
    order_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    reason: str = "",
) -> StockLedgerEntry:
    """Apply a signed movement to an item's on-hand stock and append it to the ledger.

    quantity: positive for inbound/returns, negative for sales.
    Stock may go below zero; checkout validates availability before it sells.
    """
    if quantity == 0:
        raise MovementError("Movement quantity cannot be zero.")
    try:
        return _apply(
            tenant_id=tenant_id,
            item_id=item_id,
            quantity=quantity,
            movement_type=movement_type,
            order_id=order_id,
            actor_id=actor_id,
            reason=reason,
        )
    except DatabaseError as exc:
        raise DependencyUnavailable("Stock ledger is temporarily unavailable.") from exc


@transaction.atomic
def _apply(*, tenant_id, item_id, quantity, movement_type, order_id, actor_id, reason) -> StockLedgerEntry:
    try:
        item = Item.objects.select_for_update().only("id", "stock_quantity").get(id=item_id, tenant_id=tenant_id)
    except Item.DoesNotExist:
        raise MovementError("Item not found.")

    Item.objects.filter(id=item.id).update(stock_quantity=F("stock_quantity") + quantity)
    item.refresh_from_db(fields=["stock_quantity"])
    entry = StockLedgerEntry.objects.create(
        tenant_id=tenant_id,
        item_id=item.id,
        movement_type=movement_type,
        quantity=quantity,
        previous_quantity=item.stock_quantity - quantity,
        new_quantity=item.stock_quantity,
        order_id=order_id,
        actor_id=actor_id,
        reason=reason,
    )
    logger.info(
        "stock.movement",
        extra={
            "event": "stock.movement",
            "item_id": item.id,
            "movement_type": movement_type,
            "quantity": quantity,
            "new_quantity": item.stock_quantity,
            "order_id": order_id,
        },
    )
    return entry


def adjust_stock(*, item: Item, new_quantity: int, reason: str, actor=None) -> Optional[StockLedgerEntry]:
    """Set an item's on-hand stock after a count; no entry when nothing changes."""

    if new_quantity < 0:
        raise MovementError("Stock count cannot be negative.")
    item.refresh_from_db(fields=["stock_quantity"])
    delta = new_quantity - item.stock_quantity
    if delta == 0:
        return None
    return record_movement(
        tenant_id=item.tenant_id,
        item_id=item.id,
        quantity=delta,
        movement_type=StockLedgerEntry.TYPE_ADJUST,
        actor_id=getattr(actor, "id", None),
        reason=reason,
    )


def receive_stock(*, item: Item, quantity: int, reason: str = "", actor=None) -> StockLedgerEntry:
    if quantity <= 0:
        raise MovementError("Received quantity must be positive.")
    return record_movement(
        tenant_id=item.tenant_id,
        item_id=item.id,
        quantity=quantity,
        movement_type=StockLedgerEntry.TYPE_INBOUND,
        actor_id=getattr(actor, "id", None),
        reason=reason,
    )
