import datetime
from decimal import Decimal

import pytest
from billing.models import Commission, Invoice, InvoiceLine, Receivable
from cart.models import Cart
from catalog.models import Item
from catalog.tests.factories import BundleComponentFactory, ItemFactory, ServiceItemFactory
from common.errors import ValidationFailed
from customer.services import CustomerHints
from customer.tests.factories import CustomerFactory
from inventory.models import StockLedgerEntry
from orders.checkout import AppointmentRequest, CheckoutError, CheckoutOrchestrator, compute_totals
from orders.models import Order, OrderLine
from orders.tests.fakes import FailingScheduler, FailingStockLedger, fill_cart, open_store, place_order
from payments.fake_adapter import FakeInstrumentGenerator
from scheduling.models import Appointment
from tenants.tests.factories import PartnerFactory, TenantFactory


def test_total_arithmetic():
    totals = compute_totals(subtotal=Decimal("100"), discount_amount=Decimal("10"), shipping_cost=Decimal("15"))
    assert totals.total == Decimal("105.00")

    free = compute_totals(
        subtotal=Decimal("200"), shipping_cost=Decimal("15"), free_shipping_above=Decimal("150")
    )
    assert free.shipping_cost == Decimal("0.00")
    assert free.total == Decimal("200.00")

    free_with_discount = compute_totals(
        subtotal=Decimal("200"),
        discount_amount=Decimal("10"),
        shipping_cost=Decimal("15"),
        free_shipping_above=Decimal("150"),
    )
    assert free_with_discount.total == Decimal("190.00")


def test_percent_discount_and_floor_at_zero():
    assert compute_totals(subtotal=Decimal("80"), discount_percent=Decimal("25")).discount_amount == Decimal("20.00")
    assert compute_totals(subtotal=Decimal("10"), discount_amount=Decimal("30")).total == Decimal("0.00")
    with pytest.raises(CheckoutError):
        compute_totals(subtotal=Decimal("10"), shipping_cost=Decimal("-1"))


@pytest.mark.django_db
def test_checkout_builds_the_order_graph():
    tenant = open_store(TenantFactory(), payment_key="pix@store.com")
    item = ItemFactory(tenant=tenant, price=Decimal("50.00"), track_stock=True, stock_quantity=10)
    fill_cart(tenant, (item, 2))

    result = place_order(tenant, shipping_cost=Decimal("15.00"), shipping_address={"city": "Recife"})

    order = Order.objects.get(id=result.order.id)
    assert order.number == f"ORD-{order.id:06d}"
    assert order.online_status == Order.ONLINE_PENDING_PAYMENT
    assert order.status == Order.STATUS_OPEN
    assert order.channel == "online"
    assert order.subtotal == Decimal("100.00")
    assert order.total == Decimal("115.00")
    assert order.has_pending_products is True
    assert order.has_pending_services is False
    assert order.customer.email == "ana@example.com"

    line = OrderLine.objects.get(order=order)
    assert (line.quantity, line.unit_price, line.cost_price) == (2, Decimal("50.00"), Decimal("4.00"))
    assert line.separation_status == line.delivery_status == line.fulfillment_status == "pending"

    invoice = Invoice.objects.get(id=result.invoice_id)
    assert order.invoice_id == invoice.id
    assert invoice.number.startswith("INV-")
    assert invoice.total == order.total
    assert InvoiceLine.objects.filter(invoice=invoice, order_line=line).count() == 1

    receivable = Receivable.objects.get(id=result.receivable_id)
    assert receivable.amount == order.total
    assert receivable.status == Receivable.STATUS_PENDING

    entry = StockLedgerEntry.objects.get(order=order)
    assert entry.quantity == -2
    assert Item.objects.get(id=item.id).stock_quantity == 8

    assert result.payment_instrument.human_code == f"FAKE-{order.number}-115.00"
    assert order.payment_instrument["raw_key"] == "pix@store.com"
    assert not Cart.objects.filter(tenant=tenant).exists()
    assert result.skipped == []


@pytest.mark.django_db
def test_bundle_explosion_conserves_quantities_and_prices_the_bundle_once():
    tenant = open_store(TenantFactory())
    bundle = ItemFactory(tenant=tenant, is_bundle=True, price=Decimal("30.00"))
    a = ItemFactory(tenant=tenant, price=Decimal("10.00"), track_stock=True, stock_quantity=20)
    b = ItemFactory(tenant=tenant, price=Decimal("7.00"))
    BundleComponentFactory(bundle=bundle, component=a, quantity=2, sort_order=0)
    BundleComponentFactory(bundle=bundle, component=b, quantity=1, sort_order=1)
    fill_cart(tenant, (bundle, 3))

    order = place_order(tenant).order

    assert order.subtotal == Decimal("90.00")
    parent = OrderLine.objects.get(order=order, is_composition_parent=True)
    assert (parent.item_id, parent.quantity, parent.cost_price) == (bundle.id, 3, Decimal("0.00"))
    assert parent.fulfillment_status == "pending"
    children = list(parent.children.order_by("sort_order"))
    assert [(c.item_id, c.quantity, c.unit_price) for c in children] == [
        (a.id, 6, Decimal("10.00")),
        (b.id, 3, Decimal("7.00")),
    ]
    assert InvoiceLine.objects.filter(invoice_id=order.invoice_id).count() == 2
    assert StockLedgerEntry.objects.get(order=order, item=a).quantity == -6
    assert Item.objects.get(id=a.id).stock_quantity == 14


@pytest.mark.django_db
def test_stale_cart_fails_closed_without_writing():
    tenant = open_store(TenantFactory())
    item = ItemFactory(tenant=tenant, price=Decimal("10.00"))
    fill_cart(tenant, (item, 1))
    Item.objects.filter(id=item.id).update(price=Decimal("12.00"))

    with pytest.raises(CheckoutError) as exc:
        place_order(tenant)

    assert exc.value.details == {"price_changed": 1, "stock_insufficient": 0}
    assert "changed price" in exc.value.message
    assert not Order.objects.exists()
    assert Cart.objects.filter(tenant=tenant).exists()


@pytest.mark.django_db
def test_understocked_cart_fails_closed():
    tenant = open_store(TenantFactory())
    item = ItemFactory(tenant=tenant, track_stock=True, stock_quantity=3)
    fill_cart(tenant, (item, 3))
    Item.objects.filter(id=item.id).update(stock_quantity=1)

    with pytest.raises(CheckoutError) as exc:
        place_order(tenant)
    assert exc.value.details["stock_insufficient"] == 1


@pytest.mark.django_db
def test_empty_cart_and_unconfigured_store_are_rejected():
    tenant = open_store(TenantFactory())
    with pytest.raises(CheckoutError):
        place_order(tenant)

    closed = TenantFactory()
    fill_cart(closed, (ItemFactory(tenant=closed), 1))
    with pytest.raises(ValidationFailed) as exc:
        place_order(closed)
    assert "not configured" in exc.value.message


@pytest.mark.django_db
def test_minimum_order_value_is_enforced():
    tenant = open_store(TenantFactory(), min_order_value=Decimal("50.00"))
    fill_cart(tenant, (ItemFactory(tenant=tenant, price=Decimal("10.00")), 2))

    with pytest.raises(CheckoutError) as exc:
        place_order(tenant)
    assert exc.value.details == {"minimum": "50.00"}


@pytest.mark.django_db
def test_existing_customer_is_reused_by_email():
    tenant = open_store(TenantFactory())
    customer = CustomerFactory(tenant=tenant, email="known@example.com")
    fill_cart(tenant, (ItemFactory(tenant=tenant), 1))

    order = place_order(tenant, hints=CustomerHints(email="KNOWN@example.com")).order
    assert order.customer_id == customer.id


@pytest.mark.django_db
def test_best_effort_steps_do_not_undo_the_order():
    tenant = open_store(TenantFactory())
    item = ItemFactory(tenant=tenant, track_stock=True, stock_quantity=5)
    fill_cart(tenant, (item, 2))
    ledger = FailingStockLedger()
    payments = FakeInstrumentGenerator()
    payments.configure(should_succeed=False)

    result = place_order(tenant, orchestrator=CheckoutOrchestrator(stock_ledger=ledger, payments=payments))

    assert ledger.attempts == 1
    assert result.skipped == ["stock", "payment_instrument"]
    assert result.payment_instrument is None
    order = Order.objects.get(id=result.order.id)
    assert order.online_status == Order.ONLINE_PENDING_PAYMENT
    assert order.payment_instrument == {}
    assert Receivable.objects.filter(order=order).count() == 1
    assert Item.objects.get(id=item.id).stock_quantity == 5


@pytest.mark.django_db
def test_commission_from_line_rates_for_the_default_partner():
    tenant = TenantFactory()
    partner = PartnerFactory(tenant=tenant)
    open_store(tenant, default_partner=partner)
    fill_cart(tenant, (ItemFactory(tenant=tenant, price=Decimal("10.00"), commission_percent=Decimal("10")), 2))

    result = place_order(tenant)

    assert result.order.partner_id == partner.id
    commission = Commission.objects.get(id=result.commission_id)
    assert (commission.partner_id, commission.amount, commission.base_amount) == (
        partner.id,
        Decimal("2.00"),
        Decimal("20.00"),
    )


@pytest.mark.django_db
def test_store_commission_rate_overrides_line_rates():
    tenant = open_store(TenantFactory(), commission_percent=Decimal("5"))
    partner = PartnerFactory(tenant=tenant)
    fill_cart(tenant, (ItemFactory(tenant=tenant, price=Decimal("10.00"), commission_percent=Decimal("10")), 2))

    result = place_order(tenant, partner_id=partner.id)

    commission = Commission.objects.get(order=result.order)
    assert commission.amount == Decimal("1.00")
    assert commission.percent == Decimal("5.00")


@pytest.mark.django_db
def test_no_commission_without_partner_or_amount():
    tenant = open_store(TenantFactory())
    partner = PartnerFactory(tenant=tenant)
    fill_cart(tenant, (ItemFactory(tenant=tenant), 1))

    result = place_order(tenant, partner_id=partner.id)
    assert result.commission_id is None
    assert not Commission.objects.exists()


@pytest.mark.django_db
def test_service_lines_are_booked_when_a_slot_is_given():
    tenant = open_store(TenantFactory())
    service = ServiceItemFactory(tenant=tenant, price=Decimal("80.00"))
    fill_cart(tenant, (service, 1))
    slot = AppointmentRequest(item_id=service.id, date=datetime.date(2030, 5, 10), start_time=datetime.time(9, 0))

    result = place_order(tenant, appointments=(slot,))

    appointment = Appointment.objects.get(order=result.order)
    assert result.appointment_codes == [appointment.confirmation_code]
    line = OrderLine.objects.get(order=result.order)
    assert appointment.order_line_id == line.id
    assert appointment.customer_id == result.order.customer_id
    assert (line.separation_status, line.fulfillment_status) == ("not_required", "pending")
    assert result.order.has_pending_services is True
    assert result.order.has_pending_products is False


@pytest.mark.django_db
def test_booking_failure_is_skipped():
    tenant = open_store(TenantFactory())
    service = ServiceItemFactory(tenant=tenant)
    fill_cart(tenant, (service, 1))
    slot = AppointmentRequest(item_id=service.id, date=datetime.date(2030, 5, 10), start_time=datetime.time(9, 0))

    result = place_order(
        tenant,
        appointments=(slot,),
        orchestrator=CheckoutOrchestrator(scheduler=FailingScheduler(), payments=FakeInstrumentGenerator()),
    )
    assert result.skipped == ["appointment"]
    assert Order.objects.filter(id=result.order.id).exists()


@pytest.mark.django_db
def test_slot_for_item_that_needs_no_booking_is_rejected():
    tenant = open_store(TenantFactory())
    item = ItemFactory(tenant=tenant)
    fill_cart(tenant, (item, 1))
    slot = AppointmentRequest(item_id=item.id, date=datetime.date(2030, 5, 10), start_time=datetime.time(9, 0))

    with pytest.raises(CheckoutError):
        place_order(tenant, appointments=(slot,))
    assert not Order.objects.exists()


@pytest.mark.django_db
def test_plain_service_is_fulfilled_at_creation():
    tenant = open_store(TenantFactory())
    fill_cart(tenant, (ServiceItemFactory(tenant=tenant, requires_scheduling=False), 1))

    order = place_order(tenant).order
    line = OrderLine.objects.get(order=order)
    assert line.fulfillment_status == "completed"
    assert order.has_pending_services is False


@pytest.mark.django_db
def test_failed_invoice_is_logged_with_its_step(monkeypatch, caplog):
    tenant = open_store(TenantFactory())
    fill_cart(tenant, (ItemFactory(tenant=tenant, track_stock=True, stock_quantity=5), 1))

    def broken_invoice(**kwargs):
        raise RuntimeError("invoice store down")

    monkeypatch.setattr("orders.checkout.issue_invoice", broken_invoice)
    with caplog.at_level("ERROR", logger="storefront.checkout"), pytest.raises(RuntimeError):
        place_order(tenant)

    incomplete = [r for r in caplog.records if r.getMessage() == "checkout.incomplete"]
    assert [r.step for r in incomplete] == ["invoice"]
    order = Order.objects.get(tenant=tenant)
    assert StockLedgerEntry.objects.filter(order=order).count() == 1
    assert order.invoice_id is None
