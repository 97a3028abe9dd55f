import pytest
from catalog.tests.factories import ItemFactory
from django.core.management import call_command
from inventory.adapters import DjangoStockLedger
from inventory.models import StockLedgerEntry
from inventory.selectors import unreversed_sales_for_order
from inventory.services import MovementError, adjust_stock, receive_stock, record_movement
from orders.tests.factories import OrderFactory


@pytest.mark.django_db
def test_movement_updates_stock_and_records_previous_and_new():
    item = ItemFactory(track_stock=True, stock_quantity=10)

    entry = record_movement(
        tenant_id=item.tenant_id, item_id=item.id, quantity=-3, movement_type=StockLedgerEntry.TYPE_SALE
    )

    item.refresh_from_db()
    assert item.stock_quantity == 7
    assert (entry.previous_quantity, entry.new_quantity) == (10, 7)


@pytest.mark.django_db
def test_zero_quantity_is_rejected():
    item = ItemFactory(stock_quantity=1)
    with pytest.raises(MovementError):
        record_movement(tenant_id=item.tenant_id, item_id=item.id, quantity=0, movement_type="adjust")


@pytest.mark.django_db
def test_item_from_another_store_is_rejected():
    item = ItemFactory(stock_quantity=1)
    other = ItemFactory()
    with pytest.raises(MovementError):
        record_movement(tenant_id=other.tenant_id, item_id=item.id, quantity=1, movement_type="in")


@pytest.mark.django_db
def test_unreversed_sales_are_listed_per_entry():
    order = OrderFactory()
    a = ItemFactory(tenant=order.tenant, stock_quantity=10)
    b = ItemFactory(tenant=order.tenant, stock_quantity=10)
    ledger = DjangoStockLedger()

    ledger.record(order.tenant_id, a.id, -2, order.id)
    ledger.record(order.tenant_id, a.id, -1, order.id)
    ledger.record(order.tenant_id, b.id, -2, order.id)
    ledger.record(order.tenant_id, b.id, 2, order.id, movement_type=StockLedgerEntry.TYPE_RETURN)

    assert unreversed_sales_for_order(order.id) == [(a.id, 2), (a.id, 1)]
    assert ledger.unreversed_sales_for_order(order.id) == [(a.id, 2), (a.id, 1)]


@pytest.mark.django_db
def test_partial_return_leaves_only_the_remainder():
    order = OrderFactory()
    a = ItemFactory(tenant=order.tenant, stock_quantity=10)
    ledger = DjangoStockLedger()

    ledger.record(order.tenant_id, a.id, -2, order.id)
    ledger.record(order.tenant_id, a.id, -1, order.id)
    ledger.record(order.tenant_id, a.id, 2, order.id, movement_type=StockLedgerEntry.TYPE_RETURN)
    ledger.record(order.tenant_id, a.id, 5, order.id, movement_type=StockLedgerEntry.TYPE_INBOUND)

    assert unreversed_sales_for_order(order.id) == [(a.id, 1)]


@pytest.mark.django_db
def test_adjust_stock_records_only_the_difference():
    item = ItemFactory(stock_quantity=5)

    entry = adjust_stock(item=item, new_quantity=8, reason="count")
    assert entry.quantity == 3
    assert entry.movement_type == StockLedgerEntry.TYPE_ADJUST

    assert adjust_stock(item=item, new_quantity=8, reason="recount") is None
    with pytest.raises(MovementError):
        adjust_stock(item=item, new_quantity=-1, reason="oops")


@pytest.mark.django_db
def test_receive_stock_requires_positive_quantity():
    item = ItemFactory(stock_quantity=0)
    receive_stock(item=item, quantity=6)
    item.refresh_from_db()
    assert item.stock_quantity == 6
    with pytest.raises(MovementError):
        receive_stock(item=item, quantity=0)


@pytest.mark.django_db
def test_adjust_stock_command():
    item = ItemFactory(stock_quantity=2)
    call_command("adjust_stock", str(item.id), "9")
    item.refresh_from_db()
    assert item.stock_quantity == 9
    assert StockLedgerEntry.objects.filter(item=item, quantity=7).exists()
