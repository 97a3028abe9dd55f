"""Bundle maintenance services.

Keep ``Item.is_bundle`` in sync with whether the item has components.
"""

from typing import Iterable

from common.errors import NotFound, ValidationFailed
from django.db import transaction
from django.db.models import Max

from .models import BundleComponent, Item


def _validate_child(bundle: Item, child: Item, quantity: int) -> None:
    if quantity <= 0:
        raise ValidationFailed("Component quantity must be positive.")
    if child.tenant_id != bundle.tenant_id:
        raise ValidationFailed("Component must belong to the same store.")
    if child.id == bundle.id or _contains(child, bundle.id):
        raise ValidationFailed("A bundle cannot contain itself.")


def _contains(item: Item, target_id: int) -> bool:
    """True when ``target_id`` appears anywhere below ``item``."""

    seen = set()
    frontier = [item.id]
    while frontier:
        current = frontier.pop()
        if current in seen:
            continue
        seen.add(current)
        for child_id in BundleComponent.objects.filter(bundle_id=current).values_list("component_id", flat=True):
            if child_id == target_id:
                return True
            frontier.append(child_id)
    return False


def _get_child(bundle: Item, component_id: int) -> Item:
    try:
        return Item.objects.get(id=component_id, tenant_id=bundle.tenant_id)
    except Item.DoesNotExist:
        raise NotFound("Component item not found.")


@transaction.atomic
def set_components(*, bundle: Item, components: Iterable[tuple[int, int]]) -> list[BundleComponent]:
    """Replace the bundle's children with ``(component_id, quantity)`` pairs, in order."""

    BundleComponent.objects.filter(bundle=bundle).delete()
    created = []
    for index, (component_id, quantity) in enumerate(components):
        child = _get_child(bundle, component_id)
        _validate_child(bundle, child, quantity)
        created.append(
            BundleComponent.objects.create(bundle=bundle, component=child, quantity=quantity, sort_order=index)
        )
    bundle.is_bundle = bool(created)
    bundle.save(update_fields=["is_bundle", "updated_at"])
    return created


@transaction.atomic
def add_component(*, bundle: Item, component_id: int, quantity: int = 1) -> BundleComponent:
    """Append a child after the current last one."""

    child = _get_child(bundle, component_id)
    _validate_child(bundle, child, quantity)
    if BundleComponent.objects.filter(bundle=bundle, component=child).exists():
        raise ValidationFailed("Item is already part of this bundle.")
    last = BundleComponent.objects.filter(bundle=bundle).aggregate(m=Max("sort_order"))["m"]
    row = BundleComponent.objects.create(
        bundle=bundle,
        component=child,
        quantity=quantity,
        sort_order=0 if last is None else last + 1,
    )
    if not bundle.is_bundle:
        bundle.is_bundle = True
        bundle.save(update_fields=["is_bundle", "updated_at"])
    return row


@transaction.atomic
def remove_component(*, bundle: Item, component_id: int) -> None:
    deleted, _ = BundleComponent.objects.filter(bundle=bundle, component_id=component_id).delete()
    if not deleted:
        raise NotFound("Component is not part of this bundle.")
    if not BundleComponent.objects.filter(bundle=bundle).exists():
        bundle.is_bundle = False
        bundle.save(update_fields=["is_bundle", "updated_at"])
