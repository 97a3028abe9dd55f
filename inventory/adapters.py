"""Django ORM implementation of the stock ledger."""

from common.choices import MovementType
from common.errors import DependencyUnavailable
from django.db import DatabaseError

from .ports import StockLedger
from .selectors import unreversed_sales_for_order
from .services import record_movement


class DjangoStockLedger(StockLedger):
    def record(
        self,
        tenant_id,
        item_id,
        signed_quantity,
        order_ref=None,
        actor_id=None,
        reason=None,
        *,
        movement_type=MovementType.SALE,
    ):
        entry = record_movement(
            tenant_id=tenant_id,
            item_id=item_id,
            quantity=signed_quantity,
            movement_type=movement_type,
            order_id=order_ref,
            actor_id=actor_id,
            reason=reason or "",
        )
        return entry.id

    def unreversed_sales_for_order(self, order_ref):
        try:
            return unreversed_sales_for_order(order_ref)
        except DatabaseError as exc:
            raise DependencyUnavailable("Stock ledger is temporarily unavailable.") from exc
