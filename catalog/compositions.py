"""Bundle explosion.

``explode`` turns a bundle and a sale quantity into the leaf items that are
actually priced, stocked and fulfilled. It only reads the stored component
list, so calling it twice with the same inputs yields the same leaves.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from common.errors import NotFound, ValidationFailed

from .adapters import DjangoCatalog
from .ports import CatalogPort


@dataclass(frozen=True)
class ExplodedLeaf:
    item_id: int
    name: str
    item_kind: str
    quantity: int
    unit_price: Decimal
    cost_price: Decimal
    commission_percent: Decimal
    track_stock: bool
    requires_scheduling: bool
    requires_separation: bool
    requires_delivery: bool


def explode(bundle_id: int, sale_quantity: int = 1, *, catalog: Optional[CatalogPort] = None) -> list[ExplodedLeaf]:
    """Return the bundle's leaves with quantities multiplied by ``sale_quantity``.

    A child that is itself a bundle is expanded in place, so quantities
    multiply down the tree. Leaves keep the stored component order.

    Raises NotFound for an unknown bundle and ValidationFailed when the
    composition refers back to itself.
    """

    if sale_quantity <= 0:
        raise ValidationFailed("Quantity must be positive.")
    catalog = catalog or DjangoCatalog()
    return _expand(catalog, bundle_id, int(sale_quantity), path=(bundle_id,))


def _expand(catalog: CatalogPort, bundle_id: int, multiplier: int, path: tuple) -> list[ExplodedLeaf]:
    rows = catalog.get_components(bundle_id)
    if rows is None:
        raise NotFound("Bundle not found.")

    leaves: list[ExplodedLeaf] = []
    for row in rows:
        child = row.child
        quantity = row.quantity * multiplier
        if child.is_bundle:
            if child.id in path:
                raise ValidationFailed("Bundle composition contains a cycle.")
            leaves.extend(_expand(catalog, child.id, quantity, path + (child.id,)))
            continue
        leaves.append(
            ExplodedLeaf(
                item_id=child.id,
                name=child.name,
                item_kind=child.item_kind,
                quantity=quantity,
                unit_price=child.price,
                cost_price=child.cost_price,
                commission_percent=child.commission_percent,
                track_stock=child.track_stock,
                requires_scheduling=child.requires_scheduling,
                requires_separation=child.requires_separation,
                requires_delivery=child.requires_delivery,
            )
        )
    return leaves
