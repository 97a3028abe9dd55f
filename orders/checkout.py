"""Checkout: turn a validated cart into an order graph.

Writes happen in a fixed order, each step using ids produced by the one
before it: order header, order lines, stock movements, invoice and its
lines, receivable, commission, appointments. There is no enclosing
transaction. The header is written first so a checkout that fails half way
always leaves a discoverable order; stock, commission, appointments, the
payment instrument and clearing the cart are best-effort and only logged
when they fail.
"""

import datetime
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from billing.services import issue_invoice, open_receivable, record_commission
from cart.selectors import CartView, get_enriched_cart
from cart.services import clear_cart
from catalog.adapters import DjangoCatalog
from catalog.compositions import explode
from catalog.ports import CatalogPort
from common.choices import ItemKind, PaymentMethod, SalesChannel
from common.errors import NotFound, ValidationFailed
from common.money import ZERO, percent_of, quantize
from customer.adapters import DjangoCustomerDirectory
from customer.ports import CustomerDirectory, CustomerRecord
from customer.services import CustomerHints, resolve_customer
from inventory.adapters import DjangoStockLedger
from inventory.ports import StockLedger
from payments import get_instrument_generator
from payments.port import PaymentInstrument, PaymentInstrumentGenerator
from scheduling.adapters import DjangoScheduler
from scheduling.ports import BookingRequest, Scheduler
from tenants.models import Partner, Tenant
from tenants.services import CommerceSettings, load_commerce_settings

from .models import Order, OrderLine
from .services import attach_payment_instrument, initial_fulfillment, pending_rollups

logger = logging.getLogger("storefront.checkout")
audit = logging.getLogger("storefront.orders")


class CheckoutError(ValidationFailed):
    """The cart or the checkout input cannot be turned into an order."""


@dataclass(frozen=True)
class AppointmentRequest:
    """Preferred slot for a service line that requires scheduling."""

    item_id: int
    date: datetime.date
    start_time: datetime.time
    end_time: Optional[datetime.time] = None
    partner_id: Optional[int] = None


@dataclass(frozen=True)
class CheckoutParams:
    tenant: Tenant
    customer: CustomerHints
    user_id: Optional[int] = None
    session_id: Optional[str] = None
    shipping_address: Optional[dict] = None
    shipping_cost: Decimal = ZERO
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    partner_id: Optional[int] = None
    payment_method: str = PaymentMethod.PIX
    notes: str = ""
    appointments: tuple = ()


@dataclass
class CheckoutResult:
    order: Order
    invoice_id: Optional[int] = None
    receivable_id: Optional[int] = None
    commission_id: Optional[int] = None
    payment_instrument: Optional[PaymentInstrument] = None
    appointment_codes: list[str] = field(default_factory=list)
    # Best-effort steps that failed and were skipped
    skipped: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    discount_percent: Decimal
    shipping_cost: Decimal
    total: Decimal


def compute_totals(
    *,
    subtotal: Decimal,
    shipping_cost: Decimal = ZERO,
    discount_amount: Optional[Decimal] = None,
    discount_percent: Optional[Decimal] = None,
    free_shipping_above: Optional[Decimal] = None,
) -> Totals:
    """``total = subtotal - discount + shipping``, never below zero.

    An explicit discount amount wins over a percentage. Shipping is waived
    once the subtotal reaches the store's free-shipping threshold.
    """

    subtotal = quantize(subtotal)
    percent = Decimal(discount_percent or 0)
    if discount_amount is not None:
        discount = quantize(discount_amount)
    else:
        discount = percent_of(subtotal, percent)
    shipping = quantize(shipping_cost)
    if discount < 0 or percent < 0 or shipping < 0:
        raise CheckoutError("Discount and shipping cannot be negative.")
    if free_shipping_above is not None and subtotal >= free_shipping_above:
        shipping = ZERO
    total = max(ZERO, subtotal - discount + shipping)
    return Totals(
        subtotal=subtotal,
        discount_amount=discount,
        discount_percent=quantize(percent),
        shipping_cost=shipping,
        total=quantize(total),
    )


@dataclass
class PlannedLine:
    item_id: int
    description: str
    item_kind: str
    quantity: int
    unit_price: Decimal
    cost_price: Decimal = ZERO
    commission_percent: Decimal = ZERO
    track_stock: bool = False
    requires_scheduling: bool = False
    partner_id: Optional[int] = None
    is_parent: bool = False
    children: list["PlannedLine"] = field(default_factory=list)

    @property
    def line_total(self) -> Decimal:
        return quantize(Decimal(self.unit_price) * self.quantity)

    @property
    def commission_amount(self) -> Decimal:
        if self.is_parent:
            return ZERO
        return percent_of(self.line_total, self.commission_percent)

    def leaves(self) -> list["PlannedLine"]:
        return list(self.children) if self.is_parent else [self]


class CheckoutOrchestrator:
    """Single checkout pipeline with injected collaborators.

    Every collaborator defaults to its Django-backed adapter; tests pass
    fakes to exercise the failure paths.
    """

    def __init__(
        self,
        *,
        catalog: Optional[CatalogPort] = None,
        customers: Optional[CustomerDirectory] = None,
        stock_ledger: Optional[StockLedger] = None,
        scheduler: Optional[Scheduler] = None,
        payments: Optional[PaymentInstrumentGenerator] = None,
    ):
        self.catalog = catalog or DjangoCatalog()
        self.customers = customers or DjangoCustomerDirectory()
        self.stock_ledger = stock_ledger or DjangoStockLedger()
        self.scheduler = scheduler or DjangoScheduler()
        self.payments = payments or get_instrument_generator()

    def create_order(self, params: CheckoutParams) -> CheckoutResult:
        tenant_id = params.tenant.id
        view = get_enriched_cart(
            tenant_id=tenant_id, user_id=params.user_id, session_id=params.session_id, catalog=self.catalog
        )
        self._check_cart(view)

        commerce = load_commerce_settings(tenant=params.tenant)
        if commerce.min_order_value is not None and view.subtotal < commerce.min_order_value:
            raise CheckoutError(
                f"Minimum order value is {quantize(commerce.min_order_value)}.",
                minimum=str(quantize(commerce.min_order_value)),
            )

        partner_id = params.partner_id or commerce.default_partner_id
        if params.partner_id and not Partner.objects.filter(id=params.partner_id, tenant_id=tenant_id).exists():
            raise NotFound("Partner not found.")

        customer = resolve_customer(
            directory=self.customers, tenant_id=tenant_id, hints=params.customer, user_id=params.user_id
        )
        plan = self.plan_lines(view)
        self._check_appointments(plan, params.appointments)
        totals = compute_totals(
            subtotal=sum((entry.line_total for entry in plan), ZERO),
            shipping_cost=params.shipping_cost,
            discount_amount=params.discount_amount,
            discount_percent=params.discount_percent,
            free_shipping_above=commerce.free_shipping_above,
        )

        order = self._write_header(params, customer, totals, partner_id)
        result = CheckoutResult(order=order)
        step = "lines"
        try:
            leaves = self._write_lines(order, plan)
            result.skipped += self._write_stock(order, leaves, params.user_id)
            step = "invoice"
            invoice = issue_invoice(order=order, lines=[line for _, line in leaves])
            order.invoice = invoice
            order.save(update_fields=["invoice", "updated_at"])
            result.invoice_id = invoice.id
            step = "receivable"
            result.receivable_id = open_receivable(order=order, invoice=invoice, method=params.payment_method).id
        except Exception:
            logger.error(
                "checkout.incomplete",
                extra={"event": "checkout.incomplete", "order_id": order.id, "step": step},
                exc_info=True,
            )
            raise

        result.commission_id = self._write_commission(order, commerce, partner_id, leaves, result)
        result.appointment_codes = self._book_appointments(order, customer, leaves, params, partner_id, result)
        result.payment_instrument = self._request_instrument(order, commerce, customer, result)
        try:
            clear_cart(cart_id=view.cart.id)
        except Exception:
            logger.warning(
                "checkout.cart_clear_failed",
                extra={"event": "checkout.cart_clear_failed", "order_id": order.id, "cart_id": view.cart.id},
                exc_info=True,
            )
            result.skipped.append("cart_clear")

        audit.info(
            "order.created",
            extra={
                "event": "order.created",
                "order_id": order.id,
                "number": order.number,
                "tenant_id": tenant_id,
                "customer_id": customer.id,
                "total": order.total,
                "lines": sum(1 + len(entry.children) for entry in plan),
                "skipped": result.skipped,
            },
        )
        return result

    def _check_cart(self, view: Optional[CartView]) -> None:
        if view is None or not view.lines:
            raise CheckoutError("Cart is empty.")
        if view.has_warnings:
            changed, short = view.warning_counts()
            parts = []
            if changed:
                parts.append(f"{changed} item(s) changed price")
            if short:
                parts.append(f"{short} item(s) lack stock")
            raise CheckoutError(
                f"Review your cart before checking out: {', '.join(parts)}.",
                price_changed=changed,
                stock_insufficient=short,
            )

    def plan_lines(self, view: CartView) -> list[PlannedLine]:
        """Price every cart line; bundles become a parent with one child per component.

        A parent carries the bundle price the shopper saw; its children carry
        their own catalog prices for invoicing and fulfillment but never add
        to the subtotal.
        """

        products = self.catalog.get_items(view.cart.tenant_id, {entry.line.item_id for entry in view.lines})
        plan = []
        for entry in view.lines:
            line = entry.line
            product = products.get(line.item_id)
            if product is None:
                raise CheckoutError("An item in the cart is no longer available.")
            if product.is_quote_only:
                raise CheckoutError(f"{product.name} requires a quote and cannot be checked out.")
            if not product.is_bundle:
                plan.append(
                    PlannedLine(
                        item_id=product.id,
                        description=product.name,
                        item_kind=product.item_kind,
                        quantity=int(line.quantity),
                        unit_price=line.unit_price,
                        cost_price=product.cost_price,
                        commission_percent=product.commission_percent,
                        track_stock=product.track_stock,
                        requires_scheduling=product.requires_scheduling,
                        partner_id=line.partner_id,
                    )
                )
                continue
            children = [
                PlannedLine(
                    item_id=leaf.item_id,
                    description=leaf.name,
                    item_kind=leaf.item_kind,
                    quantity=leaf.quantity,
                    unit_price=leaf.unit_price,
                    cost_price=leaf.cost_price,
                    commission_percent=leaf.commission_percent,
                    track_stock=leaf.track_stock,
                    requires_scheduling=leaf.requires_scheduling,
                    partner_id=line.partner_id,
                )
                for leaf in explode(product.id, int(line.quantity), catalog=self.catalog)
            ]
            plan.append(
                PlannedLine(
                    item_id=product.id,
                    description=product.name,
                    item_kind=product.item_kind,
                    quantity=int(line.quantity),
                    unit_price=line.unit_price,
                    partner_id=line.partner_id,
                    is_parent=True,
                    children=children,
                )
            )
        return plan

    def _check_appointments(self, plan: list[PlannedLine], requests) -> None:
        schedulable = {leaf.item_id for entry in plan for leaf in entry.leaves() if leaf.requires_scheduling}
        for request in requests:
            if request.item_id not in schedulable:
                raise CheckoutError("Appointments can only be requested for services in the cart that need one.")

    def _write_header(self, params: CheckoutParams, customer: CustomerRecord, totals: Totals, partner_id) -> Order:
        order = Order.objects.create(
            tenant=params.tenant,
            customer_id=customer.id,
            user_id=params.user_id,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            discount_percent=totals.discount_percent,
            shipping_cost=totals.shipping_cost,
            total=totals.total,
            channel=SalesChannel.ONLINE,
            status=Order.STATUS_OPEN,
            online_status=Order.ONLINE_PENDING_PAYMENT,
            partner_id=partner_id,
            payment_method=params.payment_method,
            shipping_address=params.shipping_address or {},
            notes=params.notes,
        )
        order.number = f"ORD-{int(order.id):06d}"
        order.save(update_fields=["number", "updated_at"])
        return order

    def _write_lines(self, order: Order, plan: list[PlannedLine]) -> list[tuple[PlannedLine, OrderLine]]:
        """Persist the plan; returns the (planned, persisted) pairs of every leaf line."""

        position = 0
        leaves = []

        def persist(planned: PlannedLine, parent: Optional[OrderLine] = None) -> OrderLine:
            nonlocal position
            position += 1
            return OrderLine.objects.create(
                order=order,
                parent=parent,
                item_id=planned.item_id,
                partner_id=planned.partner_id,
                item_kind=planned.item_kind,
                description=planned.description[:255],
                quantity=planned.quantity,
                unit_price=planned.unit_price,
                cost_price=planned.cost_price,
                commission_percent=planned.commission_percent,
                commission_amount=planned.commission_amount,
                is_composition_parent=planned.is_parent,
                sort_order=position,
                **initial_fulfillment(
                    item_kind=planned.item_kind,
                    is_parent=planned.is_parent,
                    requires_scheduling=planned.requires_scheduling,
                ),
            )

        for entry in plan:
            line = persist(entry)
            if not entry.is_parent:
                leaves.append((entry, line))
                continue
            for child in entry.children:
                leaves.append((child, persist(child, parent=line)))

        order.has_pending_products, order.has_pending_services = pending_rollups(line for _, line in leaves)
        order.save(update_fields=["has_pending_products", "has_pending_services", "updated_at"])
        return leaves

    def _write_stock(self, order: Order, leaves, actor_id: Optional[int]) -> list[str]:
        skipped = []
        for planned, line in leaves:
            if not planned.track_stock or planned.item_kind != ItemKind.PRODUCT:
                continue
            try:
                self.stock_ledger.record(
                    order.tenant_id,
                    planned.item_id,
                    -planned.quantity,
                    order.id,
                    actor_id,
                    f"Online order {order.number}",
                )
            except Exception:
                logger.warning(
                    "checkout.stock_failed",
                    extra={"event": "checkout.stock_failed", "order_id": order.id, "line_id": line.id},
                    exc_info=True,
                )
                skipped.append("stock")
        return skipped

    def _write_commission(self, order: Order, commerce: CommerceSettings, partner_id, leaves, result) -> Optional[int]:
        """Partner commission: the store-wide override rate on the subtotal, else the sum of line commissions."""

        if not partner_id:
            return None
        percent = None
        if commerce.commission_percent > 0:
            percent = commerce.commission_percent
            amount = percent_of(order.subtotal, percent)
        else:
            amount = sum((planned.commission_amount for planned, _ in leaves), ZERO)
        try:
            commission = record_commission(
                order=order, partner_id=partner_id, base_amount=order.subtotal, amount=amount, percent=percent
            )
        except Exception:
            logger.warning(
                "checkout.commission_failed",
                extra={"event": "checkout.commission_failed", "order_id": order.id, "partner_id": partner_id},
                exc_info=True,
            )
            result.skipped.append("commission")
            return None
        return commission.id if commission else None

    def _book_appointments(self, order, customer, leaves, params: CheckoutParams, partner_id, result) -> list[str]:
        codes = []
        booked = set()
        for request in params.appointments:
            match = next(
                (
                    line
                    for planned, line in leaves
                    if planned.item_id == request.item_id and planned.requires_scheduling and line.id not in booked
                ),
                None,
            )
            if match is None:
                continue
            booked.add(match.id)
            try:
                codes.append(
                    self.scheduler.book(
                        BookingRequest(
                            tenant_id=order.tenant_id,
                            order_ref=order.id,
                            item_id=request.item_id,
                            date=request.date,
                            start_time=request.start_time,
                            end_time=request.end_time,
                            partner_id=request.partner_id or match.partner_id or partner_id,
                            customer_id=customer.id,
                            order_line_ref=match.id,
                        )
                    )
                )
            except Exception:
                logger.warning(
                    "checkout.appointment_failed",
                    extra={"event": "checkout.appointment_failed", "order_id": order.id, "line_id": match.id},
                    exc_info=True,
                )
                result.skipped.append("appointment")
        return codes

    def _request_instrument(self, order, commerce, customer, result) -> Optional[PaymentInstrument]:
        try:
            return attach_payment_instrument(order=order, commerce=commerce, generator=self.payments, customer=customer)
        except Exception:
            logger.warning(
                "checkout.payment_instrument_failed",
                extra={"event": "checkout.payment_instrument_failed", "order_id": order.id},
                exc_info=True,
            )
            result.skipped.append("payment_instrument")
            return None
