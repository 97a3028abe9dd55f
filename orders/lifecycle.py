"""Order state machine after checkout.

Online orders move along ``TRANSITIONS``; every change is checked against
the table before anything is written. Each transition runs in one database
transaction with the order row locked, so a payment confirmation racing a
cancellation sees the other's committed status.
"""

import logging
from typing import Optional

from billing.services import cancel_order_financials, settle_order
from common.choices import FulfillmentStatus, MovementType, OnlineOrderStatus, PaymentMethod
from common.errors import DependencyUnavailable, NotFound, TransitionInvalid, ValidationFailed
from customer.adapters import to_record
from django.db import transaction
from django.utils import timezone
from inventory.adapters import DjangoStockLedger
from inventory.ports import StockLedger
from payments import get_instrument_generator
from payments.port import PaymentInstrument, PaymentInstrumentGenerator
from scheduling.adapters import DjangoScheduler
from scheduling.ports import Scheduler
from tenants.services import load_commerce_settings

from .models import Order, OrderLine
from .services import attach_payment_instrument, derive_parent_status, refresh_rollups

logger = logging.getLogger("storefront.orders")

S = OnlineOrderStatus

TRANSITIONS: dict[str, tuple[str, ...]] = {
    S.PENDING_PAYMENT: (S.PAYMENT_CONFIRMED, S.CANCELLED),
    S.PAYMENT_CONFIRMED: (S.PROCESSING, S.CANCELLED),
    S.PROCESSING: (S.SHIPPED, S.CANCELLED),
    S.SHIPPED: (S.DELIVERED,),
    S.DELIVERED: (S.COMPLETED, S.RETURN_REQUESTED),
    S.RETURN_REQUESTED: (S.CANCELLED,),
    S.COMPLETED: (),
    S.CANCELLED: (),
}

CANCELLABLE = (S.PENDING_PAYMENT, S.PAYMENT_CONFIRMED, S.PROCESSING)
TRANSITIONS_INTO_CANCELLED = tuple(status for status, targets in TRANSITIONS.items() if S.CANCELLED in targets)

FULFILLMENT_FIELDS = ("separation_status", "delivery_status", "fulfillment_status")


def allowed_transitions(status: str) -> tuple[str, ...]:
    return TRANSITIONS.get(status, ())


class OrderLifecycleController:
    def __init__(
        self,
        *,
        stock_ledger: Optional[StockLedger] = None,
        scheduler: Optional[Scheduler] = None,
        payments: Optional[PaymentInstrumentGenerator] = None,
    ):
        self.stock_ledger = stock_ledger or DjangoStockLedger()
        self.scheduler = scheduler or DjangoScheduler()
        self._payments = payments

    @property
    def payments(self) -> PaymentInstrumentGenerator:
        return self._payments or get_instrument_generator()

    def _locked(self, order_id: int, tenant_id: Optional[int]) -> Order:
        qs = Order.objects.select_for_update().filter(id=order_id)
        if tenant_id is not None:
            qs = qs.filter(tenant_id=tenant_id)
        order = qs.first()
        if order is None:
            raise NotFound("Order not found.")
        return order

    def _log_change(self, order: Order, previous: str, actor_id: Optional[int], event: str = "order.status_changed"):
        logger.info(
            event,
            extra={
                "event": event,
                "order_id": order.id,
                "tenant_id": order.tenant_id,
                "actor_id": actor_id,
                "status_from": previous,
                "status_to": order.online_status,
            },
        )

    def confirm_payment(
        self,
        order_id: int,
        *,
        tenant_id: Optional[int] = None,
        method: str = PaymentMethod.PIX,
        reference: str = "",
        actor_id: Optional[int] = None,
    ) -> Order:
        """Record the payment; the invoice and its receivables become paid with the order total."""

        with transaction.atomic():
            order = self._locked(order_id, tenant_id)
            if order.online_status != S.PENDING_PAYMENT:
                raise TransitionInvalid(
                    "Payment can only be confirmed for orders pending payment.",
                    current=order.online_status,
                    allowed=allowed_transitions(order.online_status),
                )
            previous = order.online_status
            order.paid_at = timezone.now()
            order.status = Order.STATUS_COMPLETED
            order.online_status = S.PAYMENT_CONFIRMED
            order.save(update_fields=["paid_at", "status", "online_status", "updated_at"])
            settle_order(order=order, paid_at=order.paid_at, method=method, reference=reference)
        self._log_change(order, previous, actor_id, event="order.payment_confirmed")
        return order

    def advance(
        self,
        order_id: int,
        new_status: str,
        *,
        tenant_id: Optional[int] = None,
        tracking_code: Optional[str] = None,
        estimated_delivery_date=None,
        reason: str = "",
        actor_id: Optional[int] = None,
    ) -> Order:
        """Move the order to ``new_status`` if the table allows it.

        Confirming payment and cancelling carry side effects, so those targets
        are routed through ``confirm_payment`` and the cancellation path.
        Tracking data is only recorded when the order ships.
        """

        if new_status not in TRANSITIONS:
            raise ValidationFailed(f"Unknown order status: {new_status}.")
        if new_status == S.PAYMENT_CONFIRMED:
            return self.confirm_payment(order_id, tenant_id=tenant_id, actor_id=actor_id)
        if new_status == S.CANCELLED:
            return self._cancel(order_id, tenant_id, reason, actor_id, allowed_from=TRANSITIONS_INTO_CANCELLED)

        with transaction.atomic():
            order = self._locked(order_id, tenant_id)
            allowed = allowed_transitions(order.online_status)
            if new_status not in allowed:
                raise TransitionInvalid(
                    f"Cannot move an order from {order.online_status} to {new_status}.",
                    current=order.online_status,
                    allowed=allowed,
                )
            previous = order.online_status
            order.online_status = new_status
            fields = ["online_status", "updated_at"]
            if new_status == S.SHIPPED:
                if tracking_code is not None:
                    order.tracking_code = tracking_code
                    fields.append("tracking_code")
                if estimated_delivery_date is not None:
                    order.estimated_delivery_date = estimated_delivery_date
                    fields.append("estimated_delivery_date")
            order.save(update_fields=fields)
        self._log_change(order, previous, actor_id)
        return order

    def cancel(
        self, order_id: int, *, tenant_id: Optional[int] = None, reason: str = "", actor_id: Optional[int] = None
    ) -> Order:
        """Cancel an order that has not shipped yet and undo its side effects."""

        return self._cancel(order_id, tenant_id, reason, actor_id, allowed_from=CANCELLABLE)

    def _cancel(self, order_id, tenant_id, reason, actor_id, *, allowed_from) -> Order:
        with transaction.atomic():
            order = self._locked(order_id, tenant_id)
            if order.online_status not in allowed_from:
                raise TransitionInvalid(
                    "This order can no longer be cancelled.",
                    current=order.online_status,
                    allowed=allowed_transitions(order.online_status),
                )
            previous = order.online_status
            returned = self._return_stock(order, actor_id)

            lines = OrderLine.objects.filter(order=order)
            for name in FULFILLMENT_FIELDS:
                lines.exclude(**{name: FulfillmentStatus.NOT_REQUIRED}).update(
                    **{name: FulfillmentStatus.CANCELLED, "updated_at": timezone.now()}
                )

            order.status = Order.STATUS_CANCELLED
            order.online_status = S.CANCELLED
            order.cancelled_at = timezone.now()
            order.has_pending_products = False
            order.has_pending_services = False
            note = f"Cancelled: {reason}" if reason else "Cancelled"
            order.notes = f"{order.notes}\n{note}" if order.notes else note
            order.save(
                update_fields=[
                    "status",
                    "online_status",
                    "cancelled_at",
                    "has_pending_products",
                    "has_pending_services",
                    "notes",
                    "updated_at",
                ]
            )
            financials = cancel_order_financials(order=order)
            appointments = self.scheduler.cancel_for_order(order.id)

        logger.info(
            "order.cancelled",
            extra={
                "event": "order.cancelled",
                "order_id": order.id,
                "tenant_id": order.tenant_id,
                "actor_id": actor_id,
                "status_from": previous,
                "reason": reason,
                "stock_returned": returned,
                "appointments": appointments,
                **financials,
            },
        )
        return order

    def _return_stock(self, order: Order, actor_id: Optional[int]) -> int:
        """Append one return entry per sale entry not yet reversed; returns units put back."""

        returned = 0
        for item_id, quantity in self.stock_ledger.unreversed_sales_for_order(order.id):
            self.stock_ledger.record(
                order.tenant_id,
                item_id,
                quantity,
                order.id,
                actor_id,
                f"Cancelled order {order.number}",
                movement_type=MovementType.RETURN,
            )
            returned += quantity
        return returned

    def update_line_fulfillment(
        self,
        line_id: int,
        *,
        tenant_id: Optional[int] = None,
        separation_status: Optional[str] = None,
        delivery_status: Optional[str] = None,
        fulfillment_status: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> OrderLine:
        """Set sub-statuses on a leaf line, then re-derive its bundle parent and the order rollups."""

        changes = {
            name: value
            for name, value in zip(FULFILLMENT_FIELDS, (separation_status, delivery_status, fulfillment_status))
            if value is not None
        }
        if not changes:
            raise ValidationFailed("Provide at least one status to update.")
        settable = set(FulfillmentStatus.values) - {FulfillmentStatus.CANCELLED}
        if any(value not in settable for value in changes.values()):
            raise ValidationFailed("Unknown or reserved fulfillment status.")

        with transaction.atomic():
            qs = OrderLine.objects.select_related("order").filter(id=line_id)
            if tenant_id is not None:
                qs = qs.filter(order__tenant_id=tenant_id)
            line = qs.first()
            if line is None:
                raise NotFound("Order line not found.")
            order = Order.objects.select_for_update().get(id=line.order_id)
            if order.online_status == S.CANCELLED:
                raise ValidationFailed("Lines of a cancelled order cannot be updated.")
            if line.is_composition_parent:
                raise ValidationFailed("A bundle's status follows its components; update those instead.")

            for name, value in changes.items():
                setattr(line, name, value)
            line.save(update_fields=[*changes, "updated_at"])

            if line.parent_id:
                parent = line.parent
                parent.fulfillment_status = derive_parent_status(parent.children.all())
                parent.save(update_fields=["fulfillment_status", "updated_at"])
            refresh_rollups(order)

        logger.info(
            "order.line_updated",
            extra={
                "event": "order.line_updated",
                "order_id": order.id,
                "line_id": line.id,
                "actor_id": actor_id,
                **changes,
            },
        )
        return line

    def regenerate_payment_instrument(self, order_id: int, *, tenant_id: Optional[int] = None) -> PaymentInstrument:
        """Ask for a fresh payment instrument for an order still waiting for payment."""

        qs = Order.objects.select_related("tenant", "customer").filter(id=order_id)
        if tenant_id is not None:
            qs = qs.filter(tenant_id=tenant_id)
        order = qs.first()
        if order is None:
            raise NotFound("Order not found.")
        if order.online_status != S.PENDING_PAYMENT:
            raise TransitionInvalid(
                "A payment instrument can only be issued for orders pending payment.",
                current=order.online_status,
                allowed=allowed_transitions(order.online_status),
            )
        commerce = load_commerce_settings(tenant=order.tenant)
        try:
            instrument = attach_payment_instrument(
                order=order, commerce=commerce, generator=self.payments, customer=to_record(order.customer)
            )
        except Exception as exc:
            logger.warning(
                "order.payment_instrument_failed",
                extra={"event": "order.payment_instrument_failed", "order_id": order.id},
                exc_info=True,
            )
            raise DependencyUnavailable("Payment instrument could not be generated. Try again later.") from exc
        logger.info(
            "order.payment_instrument_regenerated",
            extra={"event": "order.payment_instrument_regenerated", "order_id": order.id},
        )
        return instrument
