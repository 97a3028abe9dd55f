"""Cart services: stock-aware mutations on the owner's cart.

An owner is a user id, a guest session id, or both. Every mutation extends
the cart's expiry.
"""

import logging
from datetime import timedelta
from typing import Optional

from catalog.adapters import DjangoCatalog
from catalog.ports import CatalogPort
from common.errors import NotFound, ValidationFailed
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone
from tenants.models import Partner

from .models import Cart, CartLine
from .selectors import find_cart, price_changed


class CartError(ValidationFailed):
    """Raised for cart mutation failures."""


logger = logging.getLogger("storefront.cart")


def _new_expiry():
    return timezone.now() + timedelta(hours=settings.CART_EXPIRY_HOURS)


def _touch(cart: Cart) -> None:
    cart.expires_at = _new_expiry()
    cart.save(update_fields=["expires_at", "updated_at"])


def _purge_expired(*, tenant_id: int, user_id: Optional[int], session_id: Optional[str]) -> None:
    keys = Q()
    if user_id:
        keys |= Q(user_id=user_id)
    if session_id:
        keys |= Q(session_id=session_id)
    Cart.objects.filter(keys, tenant_id=tenant_id, expires_at__lte=timezone.now()).delete()


def get_or_create_cart(*, tenant_id: int, user_id: Optional[int] = None, session_id: Optional[str] = None) -> Cart:
    """Return the owner's cart, creating it when absent.

    Looks up by user first and falls back to the session. An expired cart for
    either key is discarded before a new one is created.
    """

    if not user_id and not session_id:
        raise CartError("A user or session id is required.")
    cart = find_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
    if cart is not None:
        return cart

    _purge_expired(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
    session_key = session_id or None
    if user_id and session_key and Cart.objects.filter(tenant_id=tenant_id, session_id=session_key).exists():
        # The session key already names another user's cart
        session_key = None
    try:
        with transaction.atomic():
            cart = Cart.objects.create(
                tenant_id=tenant_id, user_id=user_id, session_id=session_key, expires_at=_new_expiry()
            )
    except IntegrityError:
        # Concurrent request created it first
        cart = find_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
        if cart is None:
            raise
        return cart
    logger.info(
        "cart.created",
        extra={"event": "cart.created", "cart_id": cart.id, "user_id": user_id, "guest": not user_id},
    )
    return cart


def add_item(
    *,
    tenant_id: int,
    item_id: int,
    quantity: int,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
    partner_id: Optional[int] = None,
    catalog: Optional[CatalogPort] = None,
) -> CartLine:
    """Add an item to the owner's cart, or increment the existing line.

    The unit price is captured only when the line is created. Stock-tracked
    items are checked against what the cart already holds plus the request.
    """

    if quantity <= 0:
        raise CartError("Quantity must be positive.")
    catalog = catalog or DjangoCatalog()
    cart = get_or_create_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)

    product = catalog.get_item(tenant_id, item_id)
    if product is None:
        raise NotFound("Item not found or unavailable.")
    if product.is_quote_only:
        raise CartError("This item requires a quote and cannot be added to the cart.")
    if partner_id and not Partner.objects.filter(id=partner_id, tenant_id=tenant_id).exists():
        raise NotFound("Partner not found.")

    existing = CartLine.objects.filter(cart=cart, item_id=item_id).first()
    if product.track_stock:
        in_cart = existing.quantity if existing else 0
        if product.stock_quantity < in_cart + quantity:
            available = max(0, product.stock_quantity - in_cart)
            raise CartError(f"Insufficient stock (available: {available}).", available=available)

    if existing:
        CartLine.objects.filter(id=existing.id).update(
            quantity=F("quantity") + quantity, reserved_at=timezone.now(), updated_at=timezone.now()
        )
        existing.refresh_from_db()
        line, event = existing, "cart.item_updated"
    else:
        line = CartLine.objects.create(
            cart=cart,
            item_id=item_id,
            partner_id=partner_id,
            quantity=quantity,
            unit_price=product.current_price,
        )
        event = "cart.item_added"
    _touch(cart)
    logger.info(
        event,
        extra={
            "event": event,
            "cart_id": cart.id,
            "item_id": item_id,
            "quantity": line.quantity,
            "guest": not user_id,
        },
    )
    return line


def _owned_line(*, tenant_id, line_id, user_id, session_id) -> CartLine:
    cart = find_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
    line = CartLine.objects.filter(id=line_id, cart=cart).select_related("cart").first() if cart else None
    if line is None:
        raise NotFound("Cart item not found.")
    return line


def update_quantity(
    *,
    tenant_id: int,
    line_id: int,
    quantity: int,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
) -> Optional[CartLine]:
    """Set a line's quantity; 0 removes the line. The price snapshot is kept."""

    if quantity < 0:
        raise CartError("Quantity cannot be negative.")
    line = _owned_line(tenant_id=tenant_id, line_id=line_id, user_id=user_id, session_id=session_id)
    cart = line.cart
    if quantity == 0:
        line.delete()
        _touch(cart)
        logger.info("cart.item_removed", extra={"event": "cart.item_removed", "cart_id": cart.id, "line_id": line_id})
        return None
    line.quantity = quantity
    line.reserved_at = timezone.now()
    line.save(update_fields=["quantity", "reserved_at", "updated_at"])
    _touch(cart)
    return line


def remove_line(*, tenant_id: int, line_id: int, user_id: Optional[int] = None, session_id: Optional[str] = None):
    line = _owned_line(tenant_id=tenant_id, line_id=line_id, user_id=user_id, session_id=session_id)
    cart = line.cart
    line.delete()
    _touch(cart)
    logger.info("cart.item_removed", extra={"event": "cart.item_removed", "cart_id": cart.id, "line_id": line_id})


def clear_cart(*, cart_id: int) -> None:
    """Delete a cart and its lines. Unknown ids are ignored."""

    deleted, _ = Cart.objects.filter(id=cart_id).delete()
    if deleted:
        logger.info("cart.cleared", extra={"event": "cart.cleared", "cart_id": cart_id})


@transaction.atomic
def merge_on_login(*, tenant_id: int, session_id: str, user_id: int) -> Cart:
    """Fold a guest session cart into the user's cart.

    Lines for the same item have their quantities summed; other lines move
    over unchanged. The session cart is deleted afterwards.
    """

    session_cart = find_cart(tenant_id=tenant_id, session_id=session_id)
    user_cart = get_or_create_cart(tenant_id=tenant_id, user_id=user_id)
    if session_cart is None or session_cart.id == user_cart.id:
        if user_cart.user_id != user_id:
            user_cart.user_id = user_id
            user_cart.save(update_fields=["user", "updated_at"])
        return user_cart

    held = {line.item_id: line for line in user_cart.lines.select_for_update()}
    moved = summed = 0
    for line in session_cart.lines.select_for_update():
        match = held.get(line.item_id)
        if match is not None:
            match.quantity = int(match.quantity) + int(line.quantity)
            match.reserved_at = timezone.now()
            match.save(update_fields=["quantity", "reserved_at", "updated_at"])
            summed += 1
        else:
            line.cart = user_cart
            line.save(update_fields=["cart", "updated_at"])
            moved += 1

    source_id = session_cart.id
    session_cart.delete()
    if user_cart.user_id != user_id:
        user_cart.user_id = user_id
    user_cart.expires_at = _new_expiry()
    user_cart.save(update_fields=["user", "expires_at", "updated_at"])
    logger.info(
        "cart.merged",
        extra={
            "event": "cart.merged",
            "src_cart_id": source_id,
            "dest_cart_id": user_cart.id,
            "user_id": user_id,
            "lines_moved": moved,
            "lines_summed": summed,
        },
    )
    return user_cart


def refresh_cart_prices(
    *,
    tenant_id: int,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
    catalog: Optional[CatalogPort] = None,
) -> int:
    """Re-capture the current price on every stale line; returns how many changed."""

    cart = find_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
    if cart is None:
        return 0
    catalog = catalog or DjangoCatalog()
    lines = list(cart.lines.all())
    products = catalog.get_items(tenant_id, {line.item_id for line in lines})
    updated = 0
    for line in lines:
        product = products.get(line.item_id)
        if product is None or not price_changed(line.unit_price, product.current_price):
            continue
        line.unit_price = product.current_price
        line.save(update_fields=["unit_price", "updated_at"])
        updated += 1
    if updated:
        _touch(cart)
        logger.info(
            "cart.prices_refreshed",
            extra={"event": "cart.prices_refreshed", "cart_id": cart.id, "lines": updated},
        )
    return updated


def purge_expired_carts(*, now=None) -> int:
    """Delete every expired cart; returns the number of carts removed."""

    now = now or timezone.now()
    return Cart.objects.filter(expires_at__lte=now).delete()[1].get("cart.Cart", 0)
