"""Catalog port: read-only product lookup used by carts and checkout.

Cart and checkout code program against ``CatalogPort``; the Django-backed
adapter lives in ``catalog.adapters``. Tests may pass any implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional


@dataclass(frozen=True)
class CatalogItem:
    id: int
    tenant_id: int
    name: str
    item_kind: str
    pricing_type: str
    price: Decimal
    online_price: Optional[Decimal]
    cost_price: Decimal
    commission_percent: Decimal
    is_bundle: bool
    track_stock: bool
    stock_quantity: int
    requires_scheduling: bool
    requires_separation: bool
    requires_delivery: bool

    @property
    def current_price(self) -> Decimal:
        """Price a shopper pays right now: the online price when set, else the regular price."""

        return self.online_price if self.online_price is not None else self.price

    @property
    def is_quote_only(self) -> bool:
        return self.pricing_type == "quote"

    @property
    def is_physical(self) -> bool:
        return self.item_kind == "product"


@dataclass(frozen=True)
class ComponentRow:
    child: CatalogItem
    quantity: int
    sort_order: int


class CatalogPort(ABC):
    """Abstract interface for catalog/pricing lookups."""

    @abstractmethod
    def get_item(self, tenant_id: int, item_id: int) -> Optional[CatalogItem]:
        """Return a published item of the tenant, or None."""
        ...

    @abstractmethod
    def get_items(self, tenant_id: int, item_ids: Iterable[int]) -> dict[int, CatalogItem]:
        """Batch variant of ``get_item`` keyed by item id; missing ids are absent."""
        ...

    @abstractmethod
    def get_components(self, bundle_id: int) -> Optional[list[ComponentRow]]:
        """Return the bundle's children in display order, or None for an unknown item."""
        ...
