import datetime
from decimal import Decimal

import pytest
from billing.models import Commission, Invoice, Payment, Receivable
from catalog.models import Item
from catalog.tests.factories import BundleComponentFactory, ItemFactory, ServiceItemFactory
from common.errors import DependencyUnavailable, NotFound, TransitionInvalid, ValidationFailed
from inventory.models import StockLedgerEntry
from orders.checkout import AppointmentRequest
from orders.lifecycle import OrderLifecycleController, allowed_transitions
from orders.models import Order, OrderLine
from orders.tests.fakes import fill_cart, open_store, place_order
from payments.fake_adapter import FakeInstrumentGenerator
from scheduling.models import Appointment
from tenants.tests.factories import PartnerFactory, TenantFactory


@pytest.fixture
def store():
    return open_store(TenantFactory())


@pytest.fixture
def controller():
    return OrderLifecycleController(payments=FakeInstrumentGenerator())


def stocked_order(tenant, quantity=2, stock=10):
    item = ItemFactory(tenant=tenant, price=Decimal("10.00"), track_stock=True, stock_quantity=stock)
    fill_cart(tenant, (item, quantity))
    return place_order(tenant).order, item


def place_order_with_item(tenant):
    fill_cart(tenant, (ItemFactory(tenant=tenant, price=Decimal("25.00")), 1))
    return place_order(tenant).order


def walk(controller, order, *statuses):
    for status in statuses:
        controller.advance(order.id, status)
    return Order.objects.get(id=order.id)


def test_transition_table_shape():
    assert allowed_transitions("pending_payment") == ("payment_confirmed", "cancelled")
    assert allowed_transitions("shipped") == ("delivered",)
    assert allowed_transitions("completed") == ()
    assert allowed_transitions("nonsense") == ()


@pytest.mark.django_db
def test_confirm_payment_settles_invoice_and_receivable(store, controller):
    order = place_order_with_item(store)

    confirmed = controller.confirm_payment(order.id, tenant_id=store.id, reference="E2E-1")

    assert confirmed.online_status == Order.ONLINE_PAYMENT_CONFIRMED
    assert confirmed.status == Order.STATUS_COMPLETED
    assert confirmed.paid_at is not None
    assert Invoice.objects.get(id=order.invoice_id).status == Invoice.STATUS_PAID
    receivable = Receivable.objects.get(order=order)
    assert receivable.status == Receivable.STATUS_PAID
    assert receivable.amount_received == order.total
    payment = Payment.objects.get(order=order)
    assert (payment.amount, payment.reference) == (order.total, "E2E-1")


@pytest.mark.django_db
def test_confirm_payment_twice_is_rejected(store, controller):
    order = place_order_with_item(store)
    controller.confirm_payment(order.id)

    with pytest.raises(TransitionInvalid) as exc:
        controller.confirm_payment(order.id)
    assert exc.value.details["current"] == "payment_confirmed"
    assert Payment.objects.filter(order=order).count() == 1


@pytest.mark.django_db
def test_advance_routes_payment_confirmation(store, controller):
    order = place_order_with_item(store)
    controller.advance(order.id, "payment_confirmed")
    assert Payment.objects.filter(order=order).exists()


@pytest.mark.django_db
def test_tracking_is_recorded_only_when_shipping(store, controller):
    order = place_order_with_item(store)
    controller.confirm_payment(order.id)

    controller.advance(order.id, "processing", tracking_code="EARLY")
    assert Order.objects.get(id=order.id).tracking_code == ""

    shipped = controller.advance(
        order.id, "shipped", tracking_code="BR123", estimated_delivery_date=datetime.date(2030, 1, 5)
    )
    assert shipped.tracking_code == "BR123"
    assert Order.objects.get(id=order.id).estimated_delivery_date == datetime.date(2030, 1, 5)


@pytest.mark.django_db
def test_invalid_transition_lists_allowed_targets(store, controller):
    order = place_order_with_item(store)

    with pytest.raises(TransitionInvalid) as exc:
        controller.advance(order.id, "shipped")
    assert exc.value.status_code == 409
    assert exc.value.details == {"current": "pending_payment", "allowed": ["payment_confirmed", "cancelled"]}

    with pytest.raises(ValidationFailed):
        controller.advance(order.id, "teleported")


@pytest.mark.django_db
def test_unknown_order_or_other_store(store, controller):
    order = place_order_with_item(store)
    with pytest.raises(NotFound):
        controller.cancel(order.id + 1000)
    with pytest.raises(NotFound):
        controller.cancel(order.id, tenant_id=TenantFactory().id)


@pytest.mark.django_db
def test_cancel_returns_stock_and_voids_financials(store, controller):
    partner = PartnerFactory(tenant=store)
    item = ItemFactory(
        tenant=store, price=Decimal("10.00"), track_stock=True, stock_quantity=10, commission_percent=Decimal("10")
    )
    fill_cart(store, (item, 3))
    order = place_order(store, partner_id=partner.id).order
    controller.confirm_payment(order.id)
    controller.advance(order.id, "processing")

    cancelled = controller.cancel(order.id, reason="customer changed mind")

    assert cancelled.online_status == Order.ONLINE_CANCELLED
    assert cancelled.status == Order.STATUS_CANCELLED
    assert cancelled.cancelled_at is not None
    assert cancelled.notes.endswith("Cancelled: customer changed mind")
    assert (cancelled.has_pending_products, cancelled.has_pending_services) == (False, False)

    ret = StockLedgerEntry.objects.get(order=order, movement_type=StockLedgerEntry.TYPE_RETURN)
    assert ret.quantity == 3
    assert Item.objects.get(id=item.id).stock_quantity == 10

    assert Invoice.objects.get(id=order.invoice_id).status == Invoice.STATUS_CANCELLED
    assert Receivable.objects.get(order=order).status == Receivable.STATUS_CANCELLED
    assert Commission.objects.get(order=order).status == Commission.STATUS_CANCELLED
    line = OrderLine.objects.get(order=order)
    assert line.separation_status == line.delivery_status == line.fulfillment_status == "cancelled"


@pytest.mark.django_db
def test_cancel_keeps_not_required_statuses(store, controller):
    fill_cart(store, (ServiceItemFactory(tenant=store), 1))
    order = place_order(store).order

    controller.cancel(order.id)

    line = OrderLine.objects.get(order=order)
    assert (line.separation_status, line.delivery_status, line.fulfillment_status) == (
        "not_required",
        "not_required",
        "cancelled",
    )


@pytest.mark.django_db
def test_cancel_is_refused_once_shipped(store, controller):
    order, item = stocked_order(store)
    order = walk(controller, order, "payment_confirmed", "processing", "shipped")

    with pytest.raises(TransitionInvalid):
        controller.cancel(order.id)
    assert not StockLedgerEntry.objects.filter(order=order, movement_type=StockLedgerEntry.TYPE_RETURN).exists()
    assert Item.objects.get(id=item.id).stock_quantity == 8


@pytest.mark.django_db
def test_second_cancel_fails_without_returning_stock_again(store, controller):
    order, item = stocked_order(store)
    controller.cancel(order.id)

    with pytest.raises(TransitionInvalid) as exc:
        controller.cancel(order.id)
    assert exc.value.details["allowed"] == []
    assert StockLedgerEntry.objects.filter(order=order, movement_type=StockLedgerEntry.TYPE_RETURN).count() == 1
    assert Item.objects.get(id=item.id).stock_quantity == 10


@pytest.mark.django_db
def test_cancel_reverses_each_sale_entry_of_an_item_sold_twice(store, controller):
    item = ItemFactory(tenant=store, price=Decimal("10.00"), track_stock=True, stock_quantity=10)
    kit = ItemFactory(tenant=store, is_bundle=True, price=Decimal("15.00"))
    BundleComponentFactory(bundle=kit, component=item, quantity=1)
    fill_cart(store, (item, 2), (kit, 1))
    order = place_order(store).order
    sales = StockLedgerEntry.objects.filter(order=order, movement_type=StockLedgerEntry.TYPE_SALE)
    assert sorted(sales.values_list("quantity", flat=True)) == [-2, -1]

    controller.cancel(order.id)

    returns = StockLedgerEntry.objects.filter(order=order, movement_type=StockLedgerEntry.TYPE_RETURN)
    assert sorted(returns.values_list("quantity", flat=True)) == [1, 2]
    assert Item.objects.get(id=item.id).stock_quantity == 10


@pytest.mark.django_db
def test_return_requested_can_still_be_cancelled(store, controller):
    order, item = stocked_order(store)
    order = walk(controller, order, "payment_confirmed", "processing", "shipped", "delivered", "return_requested")

    with pytest.raises(TransitionInvalid):
        controller.cancel(order.id)

    cancelled = controller.advance(order.id, "cancelled", reason="returned")
    assert cancelled.online_status == Order.ONLINE_CANCELLED
    assert Item.objects.get(id=item.id).stock_quantity == 10


@pytest.mark.django_db
def test_cancel_frees_booked_appointments(store, controller):
    service = ServiceItemFactory(tenant=store)
    fill_cart(store, (service, 1))
    slot = AppointmentRequest(item_id=service.id, date=datetime.date(2030, 3, 1), start_time=datetime.time(14, 0))
    order = place_order(store, appointments=(slot,)).order

    controller.cancel(order.id)

    assert Appointment.objects.get(order=order).status == Appointment.STATUS_CANCELLED


@pytest.mark.django_db
def test_line_fulfillment_rolls_up_to_parent_and_order(store, controller):
    bundle = ItemFactory(tenant=store, is_bundle=True, price=Decimal("30.00"))
    product = ItemFactory(tenant=store)
    service = ServiceItemFactory(tenant=store, requires_scheduling=True)
    BundleComponentFactory(bundle=bundle, component=product, quantity=1, sort_order=0)
    BundleComponentFactory(bundle=bundle, component=service, quantity=1, sort_order=1)
    fill_cart(store, (bundle, 1))
    order = place_order(store).order
    parent = OrderLine.objects.get(order=order, is_composition_parent=True)
    product_line = parent.children.get(item=product)
    service_line = parent.children.get(item=service)

    controller.update_line_fulfillment(product_line.id, separation_status="completed", fulfillment_status="in_progress")
    assert OrderLine.objects.get(id=parent.id).fulfillment_status == "in_progress"

    controller.update_line_fulfillment(product_line.id, delivery_status="completed", fulfillment_status="completed")
    refreshed = Order.objects.get(id=order.id)
    assert (refreshed.has_pending_products, refreshed.has_pending_services) == (False, True)

    controller.update_line_fulfillment(service_line.id, fulfillment_status="completed")
    assert OrderLine.objects.get(id=parent.id).fulfillment_status == "completed"
    refreshed = Order.objects.get(id=order.id)
    assert (refreshed.has_pending_products, refreshed.has_pending_services) == (False, False)


@pytest.mark.django_db
def test_line_fulfillment_guards(store, controller):
    bundle = ItemFactory(tenant=store, is_bundle=True, price=Decimal("30.00"))
    BundleComponentFactory(bundle=bundle, component=ItemFactory(tenant=store))
    fill_cart(store, (bundle, 1))
    order = place_order(store).order
    parent = OrderLine.objects.get(order=order, is_composition_parent=True)
    child = parent.children.get()

    with pytest.raises(ValidationFailed):
        controller.update_line_fulfillment(child.id)
    with pytest.raises(ValidationFailed):
        controller.update_line_fulfillment(child.id, fulfillment_status="cancelled")
    with pytest.raises(ValidationFailed):
        controller.update_line_fulfillment(parent.id, fulfillment_status="completed")
    with pytest.raises(NotFound):
        controller.update_line_fulfillment(child.id, tenant_id=TenantFactory().id, fulfillment_status="completed")

    controller.cancel(order.id)
    with pytest.raises(ValidationFailed):
        controller.update_line_fulfillment(child.id, fulfillment_status="completed")


@pytest.mark.django_db
def test_regenerate_payment_instrument(store):
    order = place_order_with_item(store)
    payments = FakeInstrumentGenerator()
    controller = OrderLifecycleController(payments=payments)

    instrument = controller.regenerate_payment_instrument(order.id, tenant_id=store.id)

    assert instrument.human_code == f"FAKE-{order.number}-{order.total}"
    assert payments.calls[-1]["order_ref"] == order.number
    assert Order.objects.get(id=order.id).payment_instrument["human_code"] == instrument.human_code

    payments.configure(should_succeed=False)
    with pytest.raises(DependencyUnavailable) as exc:
        controller.regenerate_payment_instrument(order.id)
    assert exc.value.retryable is True

    controller.confirm_payment(order.id)
    with pytest.raises(TransitionInvalid):
        controller.regenerate_payment_instrument(order.id)

