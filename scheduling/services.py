"""Appointment services."""

import datetime
import logging

from common.errors import ValidationFailed
from django.db.models import Q

from .models import Appointment
from .ports import BookingRequest

logger = logging.getLogger("storefront.orders")

DEFAULT_DURATION_MINUTES = 60


def _end_time(start: datetime.time, minutes: int) -> datetime.time:
    end = datetime.datetime.combine(datetime.date.min, start) + datetime.timedelta(minutes=minutes)
    if end.date() != datetime.date.min:
        raise ValidationFailed("Appointment must end on the day it starts.")
    return end.time()


def book_appointment(*, request: BookingRequest, duration_minutes=None) -> Appointment:
    """Create a scheduled appointment.

    The end time defaults to the start plus the service duration. A partner
    cannot hold two overlapping scheduled appointments on the same day.
    """
    end_time = request.end_time or _end_time(request.start_time, duration_minutes or DEFAULT_DURATION_MINUTES)
    if end_time <= request.start_time:
        raise ValidationFailed("Appointment end time must be after its start time.")

    if request.partner_id:
        clash = Appointment.objects.filter(
            Q(start_time__lt=end_time) & Q(end_time__gt=request.start_time),
            partner_id=request.partner_id,
            scheduled_date=request.date,
            status=Appointment.STATUS_SCHEDULED,
        ).exists()
        if clash:
            raise ValidationFailed("Partner is not available at the requested time.")

    appointment = Appointment.objects.create(
        tenant_id=request.tenant_id,
        order_id=request.order_ref,
        order_line_id=request.order_line_ref,
        partner_id=request.partner_id,
        customer_id=request.customer_id,
        item_id=request.item_id,
        scheduled_date=request.date,
        start_time=request.start_time,
        end_time=end_time,
    )
    appointment.confirmation_code = f"APT-{appointment.id:06d}"
    appointment.save(update_fields=["confirmation_code", "updated_at"])
    logger.info(
        "appointment.booked",
        extra={"event": "appointment.booked", "order_id": request.order_ref, "appointment_id": appointment.id},
    )
    return appointment


def cancel_order_appointments(*, order_id: int) -> int:
    return Appointment.objects.filter(order_id=order_id, status=Appointment.STATUS_SCHEDULED).update(
        status=Appointment.STATUS_CANCELLED
    )
