"""Selectors for read-only order queries."""

from typing import Optional

from common.choices import OnlineOrderStatus
from common.errors import NotFound
from django.db.models import Count, QuerySet

from .models import Order, OrderLine


def get_order(*, order_id: int, tenant_id: int, user_id: Optional[int] = None) -> Order:
    """Fetch one order of a store; with ``user_id`` only that user's orders are visible."""

    qs = Order.objects.filter(id=order_id, tenant_id=tenant_id)
    if user_id is not None:
        qs = qs.filter(user_id=user_id)
    order = qs.select_related("customer", "partner").first()
    if order is None:
        raise NotFound("Order not found.")
    return order


def order_lines(*, order: Order) -> QuerySet[OrderLine]:
    return OrderLine.objects.filter(order=order).select_related("item").order_by("sort_order", "id")


def orders_for_user(*, tenant_id: int, user_id: int, online_status: Optional[str] = None) -> QuerySet[Order]:
    qs = Order.objects.filter(tenant_id=tenant_id, user_id=user_id)
    if online_status:
        qs = qs.filter(online_status=online_status)
    return qs.order_by("-created_at", "-id")


def orders_for_tenant(
    *, tenant_id: int, online_status: Optional[str] = None, partner_id: Optional[int] = None
) -> QuerySet[Order]:
    qs = Order.objects.filter(tenant_id=tenant_id).select_related("customer", "partner")
    if online_status:
        qs = qs.filter(online_status=online_status)
    if partner_id:
        qs = qs.filter(partner_id=partner_id)
    return qs.order_by("-created_at", "-id")


def status_summary(*, tenant_id: int) -> dict[str, int]:
    """Order count per online status, with every status present."""

    summary = {status: 0 for status in OnlineOrderStatus.values}
    rows = (
        Order.objects.filter(tenant_id=tenant_id)
        .values("online_status")
        .annotate(count=Count("id"))
        .order_by()
    )
    for row in rows:
        summary[row["online_status"]] = row["count"]
    return summary
