from datetime import timedelta
from decimal import Decimal

import pytest
from cart.services import add_item
from cart.tests.factories import UserFactory
from catalog.tests.factories import ItemFactory
from django.core.management import call_command
from django.utils import timezone
from orders.models import IdempotencyKey, Order, OrderLine
from orders.tests.factories import OrderFactory
from orders.tests.fakes import fill_cart, open_store, place_order
from payments import reset_instrument_generator
from rest_framework.test import APIClient
from tenants.tests.factories import TenantFactory


@pytest.fixture(autouse=True)
def fresh_instrument_generator():
    reset_instrument_generator()
    yield
    reset_instrument_generator()


@pytest.fixture
def store():
    return open_store(TenantFactory(), payment_key="pix@store.com")


@pytest.fixture
def staff_client():
    client = APIClient()
    client.force_authenticate(user=UserFactory(is_staff=True))
    return client


def orders_url(tenant, suffix=""):
    return f"/api/v1/stores/{tenant.slug}/orders/{suffix}"


def user_order(tenant, user, quantity=1):
    item = ItemFactory(tenant=tenant, price=Decimal("20.00"), track_stock=True, stock_quantity=10)
    add_item(tenant_id=tenant.id, item_id=item.id, quantity=quantity, user_id=user.id)
    return place_order(tenant, session_id=None, user_id=user.id).order


@pytest.mark.django_db
def test_guest_checkout_from_session_cart(store):
    fill_cart(store, (ItemFactory(tenant=store, price=Decimal("40.00")), 2), session_id="guest-1")
    client = APIClient()

    res = client.post(
        orders_url(store, "checkout/"),
        {"name": "Bia Lima", "email": "bia@example.com", "shipping_cost": "10.00", "shipping_address": {"city": "X"}},
        format="json",
        HTTP_X_SESSION_ID="guest-1",
    )

    assert res.status_code == 201
    body = res.json()
    assert body["order"]["number"].startswith("ORD-")
    assert body["order"]["online_status"] == "pending_payment"
    assert body["order"]["total"] == "90.00"
    assert len(body["order"]["lines"]) == 1
    assert body["invoice_id"] and body["receivable_id"]
    assert body["payment_instrument"]["human_code"] == f"FAKE-{body['order']['number']}-90.00"
    assert body["skipped"] == []
    assert Order.objects.get(id=body["order"]["id"]).user_id is None


@pytest.mark.django_db
def test_checkout_errors_are_structured(store):
    client = APIClient()

    empty = client.post(orders_url(store, "checkout/"), {"name": "Bia"}, format="json", HTTP_X_SESSION_ID="none")
    assert empty.status_code == 400
    assert empty.json() == {"kind": "validation", "detail": "Cart is empty."}

    missing = client.post("/api/v1/stores/no-such-store/orders/checkout/", {"name": "Bia"}, format="json")
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"


@pytest.mark.django_db
def test_checkout_replays_with_same_idempotency_key(store):
    fill_cart(store, (ItemFactory(tenant=store), 1), session_id="guest-2")
    client = APIClient()
    url = orders_url(store, "checkout/")
    payload = {"name": "Bia", "email": "bia@example.com"}

    first = client.post(url, payload, format="json", HTTP_X_SESSION_ID="guest-2", HTTP_IDEMPOTENCY_KEY="k-1")
    second = client.post(url, payload, format="json", HTTP_X_SESSION_ID="guest-2", HTTP_IDEMPOTENCY_KEY="k-1")

    assert first.status_code == second.status_code == 201
    assert second.json()["order"]["id"] == first.json()["order"]["id"]
    assert Order.objects.filter(tenant=store).count() == 1

    reused = client.post(
        url, {"name": "Other"}, format="json", HTTP_X_SESSION_ID="guest-2", HTTP_IDEMPOTENCY_KEY="k-1"
    )
    assert reused.status_code == 409
    assert reused.json()["kind"] == "conflict"


@pytest.mark.django_db
def test_guest_idempotency_keys_are_scoped_to_the_session(store):
    item = ItemFactory(tenant=store)
    fill_cart(store, (item, 1), session_id="guest-a")
    fill_cart(store, (item, 1), session_id="guest-b")
    client = APIClient()
    url = orders_url(store, "checkout/")
    payload = {"name": "Bia", "email": "bia@example.com"}

    first = client.post(url, payload, format="json", HTTP_X_SESSION_ID="guest-a", HTTP_IDEMPOTENCY_KEY="k")
    second = client.post(url, payload, format="json", HTTP_X_SESSION_ID="guest-b", HTTP_IDEMPOTENCY_KEY="k")

    assert first.status_code == second.status_code == 201
    assert second.json()["order"]["id"] != first.json()["order"]["id"]
    assert Order.objects.filter(tenant=store).count() == 2
    assert set(IdempotencyKey.objects.values_list("scope", flat=True)) == {"session:guest-a", "session:guest-b"}


@pytest.mark.django_db
def test_user_sees_only_own_orders(store):
    owner = UserFactory()
    order = user_order(store, owner)
    other = APIClient()
    other.force_authenticate(user=UserFactory())
    client = APIClient()
    client.force_authenticate(user=owner)

    listing = client.get(orders_url(store))
    assert listing.status_code == 200
    assert [row["id"] for row in listing.json()["results"]] == [order.id]
    assert client.get(orders_url(store), {"status": "shipped"}).json()["results"] == []
    assert client.get(orders_url(store), {"number": order.number}).json()["count"] == 1

    detail = client.get(orders_url(store, f"{order.id}/"))
    assert detail.status_code == 200
    assert detail.json()["total"] == "20.00"
    assert client.get(orders_url(store, f"{order.id}/lines/")).json()[0]["quantity"] == 1

    assert other.get(orders_url(store, f"{order.id}/")).status_code == 404
    assert other.get(orders_url(store)).json()["results"] == []
    assert APIClient().get(orders_url(store)).status_code == 401


@pytest.mark.django_db
def test_cancel_then_conflict(store):
    owner = UserFactory()
    order = user_order(store, owner, quantity=2)
    client = APIClient()
    client.force_authenticate(user=owner)

    res = client.post(orders_url(store, f"{order.id}/cancel/"), {"reason": "changed mind"}, format="json")
    assert res.status_code == 200
    assert res.json()["online_status"] == "cancelled"

    again = client.post(orders_url(store, f"{order.id}/cancel/"), {}, format="json")
    assert again.status_code == 409
    body = again.json()
    assert body["kind"] == "transition_invalid"
    assert body["current"] == "cancelled"
    assert body["allowed"] == []


@pytest.mark.django_db
def test_regenerate_payment_instrument_endpoint(store):
    owner = UserFactory()
    order = user_order(store, owner)
    client = APIClient()
    client.force_authenticate(user=owner)

    res = client.post(orders_url(store, f"{order.id}/payment-instrument/"))

    assert res.status_code == 200
    assert res.json()["raw_key"] == "pix@store.com"


@pytest.mark.django_db
def test_staff_endpoints_reject_shoppers(store):
    order = OrderFactory(tenant=store)
    client = APIClient()
    client.force_authenticate(user=UserFactory())

    assert client.get(orders_url(store, "manage/")).status_code == 403
    assert client.get(orders_url(store, "manage/summary/")).status_code == 403
    assert client.post(orders_url(store, f"{order.id}/confirm-payment/"), {}, format="json").status_code == 403
    assert client.post(orders_url(store, f"{order.id}/status/"), {"status": "processing"}).status_code == 403


@pytest.mark.django_db
def test_status_summary_is_zero_filled(store, staff_client):
    OrderFactory.create_batch(2, tenant=store)
    OrderFactory(tenant=store, online_status=Order.ONLINE_SHIPPED)
    OrderFactory(tenant=TenantFactory())

    res = staff_client.get(orders_url(store, "manage/summary/"))

    assert res.status_code == 200
    body = res.json()
    assert body["pending_payment"] == 2
    assert body["shipped"] == 1
    assert body["return_requested"] == 0
    assert len(body) == 8


@pytest.mark.django_db
def test_staff_moves_order_through_lifecycle(store, staff_client):
    owner = UserFactory()
    order = user_order(store, owner)
    line = OrderLine.objects.get(order=order)

    listing = staff_client.get(orders_url(store, "manage/"), {"online_status": "pending_payment"})
    assert [row["id"] for row in listing.json()["results"]] == [order.id]

    paid = staff_client.post(
        orders_url(store, f"{order.id}/confirm-payment/"), {"reference": "E2E-9"}, format="json"
    )
    assert paid.status_code == 200
    assert paid.json()["online_status"] == "payment_confirmed"

    skipped = staff_client.post(orders_url(store, f"{order.id}/status/"), {"status": "delivered"}, format="json")
    assert skipped.status_code == 409

    assert (
        staff_client.post(orders_url(store, f"{order.id}/status/"), {"status": "processing"}, format="json")
    ).status_code == 200
    shipped = staff_client.post(
        orders_url(store, f"{order.id}/status/"),
        {"status": "shipped", "tracking_code": "BR999", "estimated_delivery_date": "2030-01-10"},
        format="json",
    )
    assert shipped.status_code == 200
    assert shipped.json()["tracking_code"] == "BR999"
    assert shipped.json()["estimated_delivery_date"] == "2030-01-10"

    patched = staff_client.patch(
        orders_url(store, f"lines/{line.id}/fulfillment/"),
        {"separation_status": "completed", "delivery_status": "completed", "fulfillment_status": "completed"},
        format="json",
    )
    assert patched.status_code == 200
    assert patched.json()["fulfillment_status"] == "completed"
    assert Order.objects.get(id=order.id).has_pending_products is False

    bad = staff_client.patch(orders_url(store, f"lines/{line.id}/fulfillment/"), {}, format="json")
    assert bad.status_code == 400


@pytest.mark.django_db
def test_cleanup_idempotency_command():
    past = timezone.now() - timedelta(hours=1)
    IdempotencyKey.objects.create(key="old", scope="anon", path="/x", method="POST", expires_at=past)
    IdempotencyKey.objects.create(
        key="new", scope="anon", path="/x", method="POST", expires_at=timezone.now() + timedelta(hours=1)
    )

    call_command("cleanup_idempotency")

    assert list(IdempotencyKey.objects.values_list("key", flat=True)) == ["new"]
