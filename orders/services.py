"""Order write helpers shared by checkout and the lifecycle controller.

Also hosts the idempotent request runner used by the mutating endpoints.
"""

import hashlib
import json
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Optional, Tuple

from common.choices import FulfillmentStatus, ItemKind
from customer.ports import CustomerRecord
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from payments.port import PaymentInstrument, PaymentInstrumentGenerator
from tenants.services import CommerceSettings

from .models import IdempotencyKey, Order, OrderLine

logger = logging.getLogger("storefront.orders")

# Statuses that still need work from the store
OPEN_FULFILLMENT = (FulfillmentStatus.PENDING, FulfillmentStatus.IN_PROGRESS)
DONE_FULFILLMENT = (FulfillmentStatus.COMPLETED, FulfillmentStatus.NOT_REQUIRED)


def initial_fulfillment(*, item_kind: str, is_parent: bool = False, requires_scheduling: bool = False) -> dict:
    """Separation, delivery and fulfillment status of a freshly created line."""

    nr = FulfillmentStatus.NOT_REQUIRED
    if is_parent:
        return {"separation_status": nr, "delivery_status": nr, "fulfillment_status": FulfillmentStatus.PENDING}
    if item_kind == ItemKind.PRODUCT:
        pending = FulfillmentStatus.PENDING
        return {"separation_status": pending, "delivery_status": pending, "fulfillment_status": pending}
    if requires_scheduling:
        return {"separation_status": nr, "delivery_status": nr, "fulfillment_status": FulfillmentStatus.PENDING}
    return {"separation_status": nr, "delivery_status": nr, "fulfillment_status": FulfillmentStatus.COMPLETED}


def derive_parent_status(children) -> str:
    statuses = [child.fulfillment_status for child in children]
    if not statuses or all(s in DONE_FULFILLMENT for s in statuses):
        return FulfillmentStatus.COMPLETED
    if all(s == FulfillmentStatus.CANCELLED for s in statuses):
        return FulfillmentStatus.CANCELLED
    if any(s in (FulfillmentStatus.IN_PROGRESS, FulfillmentStatus.COMPLETED) for s in statuses):
        return FulfillmentStatus.IN_PROGRESS
    return FulfillmentStatus.PENDING


def pending_rollups(lines) -> Tuple[bool, bool]:
    """(has_pending_products, has_pending_services) for the given lines; bundle parents are ignored."""

    products = services = False
    for line in lines:
        if line.is_composition_parent or line.fulfillment_status not in OPEN_FULFILLMENT:
            continue
        if line.item_kind == ItemKind.PRODUCT:
            products = True
        else:
            services = True
    return products, services


def refresh_rollups(order: Order) -> Order:
    order.has_pending_products, order.has_pending_services = pending_rollups(order.lines.all())
    order.save(update_fields=["has_pending_products", "has_pending_services", "updated_at"])
    return order


def attach_payment_instrument(
    *,
    order: Order,
    commerce: CommerceSettings,
    generator: PaymentInstrumentGenerator,
    customer: Optional[CustomerRecord] = None,
) -> PaymentInstrument:
    """Ask the generator for an instrument covering ``order.total`` and keep it on the order.

    Generator errors propagate; callers decide whether they are fatal.
    """

    instrument = generator.generate(commerce, order.total, order.number, customer, order.shipping_address or None)
    order.payment_instrument = instrument.as_dict()
    order.save(update_fields=["payment_instrument", "updated_at"])
    return instrument


def order_line_queryset(order: Order):
    return OrderLine.objects.filter(order=order).order_by("sort_order", "id")


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run ``handler`` once per (key, caller, path, method) and replay its stored response afterwards.

    - Authenticated callers are scoped as "user:<id>", guests as "session:<id>",
      callers with neither as "anon".
    - Reusing a key with a different request body returns 409.
    - A key whose first request has not stored a response yet returns 409.
    - Client errors are replayed like successes; a 5xx response or an unhandled
      exception releases the key so the caller may retry.
    """

    user_id = getattr(user, "id", None)
    if user_id:
        scope = f"user:{user_id}"
    elif session_id:
        scope = f"session:{session_id}"
    else:
        scope = "anon"
    method = str(method).upper()
    ttl = timedelta(hours=getattr(settings, "IDEMPOTENCY_TTL_HOURS", 24))

    try:
        with transaction.atomic():
            record = IdempotencyKey.objects.create(
                key=key,
                user=user if user_id else None,
                scope=scope,
                path=str(path),
                method=method,
                request_hash=request_hash,
                expires_at=timezone.now() + ttl,
            )
    except IntegrityError:
        record = IdempotencyKey.objects.get(key=key, scope=scope, path=str(path), method=method)
        if record.request_hash and request_hash and record.request_hash != request_hash:
            return {"kind": "conflict", "detail": "Idempotency key reused with different request payload"}, 409
        if record.response_json is not None and record.response_code is not None:
            logger.info("idempotency.replayed", extra={"event": "idempotency.replayed", "path": path})
            return record.response_json, int(record.response_code)
        return {"kind": "conflict", "detail": "Request in progress"}, 409

    try:
        body, code = handler()
    except Exception:
        IdempotencyKey.objects.filter(id=record.id).delete()
        raise
    if code >= 500:
        IdempotencyKey.objects.filter(id=record.id).delete()
        return body, code
    IdempotencyKey.objects.filter(id=record.id).update(response_json=_json_safe(body), response_code=code)
    return body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """SHA256 of the request body serialized with sorted keys; None for an empty body."""

    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def purge_expired_idempotency_keys(*, now=None) -> int:
    now = now or timezone.now()
    deleted, _ = IdempotencyKey.objects.filter(expires_at__lt=now).delete()
    return deleted
