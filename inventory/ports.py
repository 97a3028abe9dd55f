"""Stock ledger port used by checkout and cancellation."""

from abc import ABC, abstractmethod
from typing import Optional

from common.choices import MovementType


class StockLedger(ABC):
    """Append-only sink for signed stock movements."""

    @abstractmethod
    def record(
        self,
        tenant_id: int,
        item_id: int,
        signed_quantity: int,
        order_ref: Optional[int] = None,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
        *,
        movement_type: str = MovementType.SALE,
    ) -> int:
        """Record one movement and return the ledger entry id."""

    @abstractmethod
    def unreversed_sales_for_order(self, order_ref: int) -> list[tuple[int, int]]:
        """``(item_id, quantity)`` per sale entry of an order that no return has offset yet."""
