"""Django ORM implementation of the catalog port."""

from typing import Iterable, Optional

from common.errors import DependencyUnavailable
from django.conf import settings
from django.db import DatabaseError

from .models import BundleComponent, Item
from .ports import CatalogItem, CatalogPort, ComponentRow


def to_catalog_item(item: Item) -> CatalogItem:
    return CatalogItem(
        id=item.id,
        tenant_id=item.tenant_id,
        name=item.name,
        item_kind=item.item_kind,
        pricing_type=item.pricing_type,
        price=item.price,
        online_price=item.online_price,
        cost_price=item.cost_price,
        commission_percent=item.commission_percent,
        is_bundle=item.is_bundle,
        track_stock=item.track_stock,
        stock_quantity=int(item.stock_quantity),
        requires_scheduling=item.requires_scheduling,
        requires_separation=item.requires_separation,
        requires_delivery=item.requires_delivery,
    )


class DjangoCatalog(CatalogPort):
    def __init__(self, batch_size: Optional[int] = None):
        self.batch_size = batch_size or getattr(settings, "CATALOG_BATCH_SIZE", 50)

    def get_item(self, tenant_id: int, item_id: int) -> Optional[CatalogItem]:
        try:
            item = Item.objects.filter(tenant_id=tenant_id, id=item_id, is_published=True).first()
        except DatabaseError as exc:
            raise DependencyUnavailable("Catalog is temporarily unavailable.") from exc
        return to_catalog_item(item) if item else None

    def get_items(self, tenant_id: int, item_ids: Iterable[int]) -> dict[int, CatalogItem]:
        ids = list(dict.fromkeys(int(i) for i in item_ids))
        found: dict[int, CatalogItem] = {}
        try:
            for start in range(0, len(ids), self.batch_size):
                chunk = ids[start : start + self.batch_size]
                for item in Item.objects.filter(tenant_id=tenant_id, id__in=chunk, is_published=True):
                    found[item.id] = to_catalog_item(item)
        except DatabaseError as exc:
            raise DependencyUnavailable("Catalog is temporarily unavailable.") from exc
        return found

    def get_components(self, bundle_id: int) -> Optional[list[ComponentRow]]:
        try:
            if not Item.objects.filter(id=bundle_id).exists():
                return None
            rows = BundleComponent.objects.filter(bundle_id=bundle_id).select_related("component")
            return [
                ComponentRow(
                    child=to_catalog_item(row.component), quantity=int(row.quantity), sort_order=row.sort_order
                )
                for row in rows.order_by("sort_order", "id")
            ]
        except DatabaseError as exc:
            raise DependencyUnavailable("Catalog is temporarily unavailable.") from exc
