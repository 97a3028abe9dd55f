"""Appointments booked for service lines that need a time slot."""

from common.choices import AppointmentStatus
from common.models import TimeStampedModel
from django.db import models


class Appointment(TimeStampedModel):
    STATUS_SCHEDULED = AppointmentStatus.SCHEDULED
    STATUS_COMPLETED = AppointmentStatus.COMPLETED
    STATUS_CANCELLED = AppointmentStatus.CANCELLED
    STATUS_CHOICES = AppointmentStatus.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="appointments", on_delete=models.CASCADE)
    order = models.ForeignKey("orders.Order", related_name="appointments", on_delete=models.PROTECT)
    order_line = models.ForeignKey(
        "orders.OrderLine", null=True, blank=True, related_name="appointments", on_delete=models.SET_NULL
    )
    partner = models.ForeignKey(
        "tenants.Partner", null=True, blank=True, related_name="appointments", on_delete=models.SET_NULL
    )
    customer = models.ForeignKey(
        "customer.Customer", null=True, blank=True, related_name="appointments", on_delete=models.SET_NULL
    )
    item = models.ForeignKey("catalog.Item", related_name="appointments", on_delete=models.PROTECT)
    scheduled_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    confirmation_code = models.CharField(max_length=20, blank=True, db_index=True)
    notes = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["scheduled_date", "start_time", "id"]
        constraints = [
            models.CheckConstraint(
                name="appointment_end_after_start", condition=models.Q(end_time__gt=models.F("start_time"))
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.confirmation_code or self.id} on {self.scheduled_date} {self.start_time}"
