import datetime

import pytest
from catalog.tests.factories import ServiceItemFactory
from common.errors import NotFound, ValidationFailed
from orders.tests.factories import OrderFactory
from scheduling.adapters import DjangoScheduler
from scheduling.models import Appointment
from scheduling.ports import BookingRequest
from tenants.tests.factories import PartnerFactory


def _request(order, item, **overrides):
    values = {
        "tenant_id": order.tenant_id,
        "order_ref": order.id,
        "item_id": item.id,
        "date": datetime.date(2030, 5, 10),
        "start_time": datetime.time(9, 0),
    }
    values.update(overrides)
    return BookingRequest(**values)


@pytest.mark.django_db
def test_book_uses_service_duration_for_end_time():
    order = OrderFactory()
    item = ServiceItemFactory(tenant=order.tenant, duration_minutes=90)

    code = DjangoScheduler().book(_request(order, item))

    appointment = Appointment.objects.get(order=order)
    assert code == appointment.confirmation_code
    assert code.startswith("APT-")
    assert appointment.end_time == datetime.time(10, 30)


@pytest.mark.django_db
def test_partner_double_booking_is_rejected():
    order = OrderFactory()
    partner = PartnerFactory(tenant=order.tenant)
    item = ServiceItemFactory(tenant=order.tenant, duration_minutes=60)
    scheduler = DjangoScheduler()
    scheduler.book(_request(order, item, partner_id=partner.id))

    with pytest.raises(ValidationFailed):
        scheduler.book(_request(order, item, partner_id=partner.id, start_time=datetime.time(9, 30)))

    # Back-to-back slots do not overlap
    scheduler.book(_request(order, item, partner_id=partner.id, start_time=datetime.time(10, 0)))


@pytest.mark.django_db
def test_unknown_item_is_not_found():
    order = OrderFactory()
    other_store_item = ServiceItemFactory()
    with pytest.raises(NotFound):
        DjangoScheduler().book(_request(order, other_store_item))


@pytest.mark.django_db
def test_cancel_for_order_only_touches_scheduled():
    order = OrderFactory()
    item = ServiceItemFactory(tenant=order.tenant)
    scheduler = DjangoScheduler()
    scheduler.book(_request(order, item))
    scheduler.book(_request(order, item, start_time=datetime.time(14, 0)))
    Appointment.objects.filter(start_time=datetime.time(14, 0)).update(status=Appointment.STATUS_COMPLETED)

    assert scheduler.cancel_for_order(order.id) == 1
    assert scheduler.cancel_for_order(order.id) == 0
