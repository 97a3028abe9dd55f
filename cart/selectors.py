"""Selectors for read-only cart queries."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from catalog.adapters import DjangoCatalog
from catalog.ports import CatalogPort
from django.conf import settings
from django.db.models import Q, Sum
from django.utils import timezone

from .models import Cart, CartLine


def find_cart(*, tenant_id: int, user_id: Optional[int] = None, session_id: Optional[str] = None) -> Optional[Cart]:
    """Return the owner's unexpired cart, preferring the user's over the session's."""

    live = Cart.objects.filter(tenant_id=tenant_id, expires_at__gt=timezone.now())
    if user_id:
        cart = live.filter(user_id=user_id).first()
        if cart is not None:
            return cart
    if session_id:
        # A session cart already claimed by another user is not visible here
        owner = (Q(user__isnull=True) | Q(user_id=user_id)) if user_id else Q(user__isnull=True)
        return live.filter(owner, session_id=session_id).first()
    return None


def price_tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "CART_PRICE_TOLERANCE", "0.01")))


def price_changed(snapshot: Decimal, current: Decimal) -> bool:
    return abs(Decimal(snapshot) - Decimal(current)) > price_tolerance()


@dataclass
class EnrichedCartLine:
    line: CartLine
    name: str = ""
    item_kind: str = ""
    current_price: Optional[Decimal] = None
    track_stock: bool = False
    stock_quantity: Optional[int] = None
    requires_scheduling: bool = False
    price_changed: bool = False
    stock_insufficient: bool = False

    @property
    def has_warning(self) -> bool:
        return self.price_changed or self.stock_insufficient


@dataclass
class CartView:
    cart: Cart
    lines: list[EnrichedCartLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    item_count: int = 0
    has_warnings: bool = False

    def warning_counts(self) -> tuple[int, int]:
        """Number of lines with a changed price and with insufficient stock."""

        return (
            sum(1 for entry in self.lines if entry.price_changed),
            sum(1 for entry in self.lines if entry.stock_insufficient),
        )


def enrich_cart(*, cart: Cart, catalog: Optional[CatalogPort] = None) -> CartView:
    """Compare every line of ``cart`` with the catalog's current data. Never writes.

    A line whose item is no longer sold is flagged as stock-insufficient.
    """
    catalog = catalog or DjangoCatalog()
    lines = list(cart.lines.order_by("created_at", "id"))
    if not lines:
        return CartView(cart=cart)

    products = catalog.get_items(cart.tenant_id, {line.item_id for line in lines})
    enriched = []
    for line in lines:
        product = products.get(line.item_id)
        if product is None:
            enriched.append(EnrichedCartLine(line=line, stock_insufficient=True))
            continue
        enriched.append(
            EnrichedCartLine(
                line=line,
                name=product.name,
                item_kind=product.item_kind,
                current_price=product.current_price,
                track_stock=product.track_stock,
                stock_quantity=product.stock_quantity,
                requires_scheduling=product.requires_scheduling,
                price_changed=price_changed(line.unit_price, product.current_price),
                stock_insufficient=product.track_stock and product.stock_quantity < line.quantity,
            )
        )

    return CartView(
        cart=cart,
        lines=enriched,
        subtotal=sum((entry.line.line_total for entry in enriched), Decimal("0.00")),
        item_count=sum(int(entry.line.quantity) for entry in enriched),
        has_warnings=any(entry.has_warning for entry in enriched),
    )


def get_enriched_cart(
    *,
    tenant_id: int,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
    catalog: Optional[CatalogPort] = None,
) -> Optional[CartView]:
    """Read-time view of the owner's cart, or None when the owner has no cart."""

    cart = find_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
    if cart is None:
        return None
    return enrich_cart(cart=cart, catalog=catalog)


def cart_item_count(*, tenant_id: int, user_id: Optional[int] = None, session_id: Optional[str] = None) -> int:
    """Total units in the owner's cart, for badge display."""

    cart = find_cart(tenant_id=tenant_id, user_id=user_id, session_id=session_id)
    if cart is None:
        return 0
    return int(cart.lines.aggregate(total=Sum("quantity"))["total"] or 0)
