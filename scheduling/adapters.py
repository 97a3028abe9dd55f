"""Django ORM implementation of the scheduling port."""

from catalog.models import Item
from common.errors import DependencyUnavailable, NotFound
from django.db import DatabaseError

from .ports import Scheduler
from .services import book_appointment, cancel_order_appointments


class DjangoScheduler(Scheduler):
    def book(self, request):
        try:
            item = Item.objects.filter(id=request.item_id, tenant_id=request.tenant_id).only("duration_minutes").first()
            if item is None:
                raise NotFound("Item not found.")
            return book_appointment(request=request, duration_minutes=item.duration_minutes).confirmation_code
        except DatabaseError as exc:
            raise DependencyUnavailable("Scheduling is temporarily unavailable.") from exc

    def cancel_for_order(self, order_ref):
        try:
            return cancel_order_appointments(order_id=order_ref)
        except DatabaseError as exc:
            raise DependencyUnavailable("Scheduling is temporarily unavailable.") from exc
