"""Customer directory.

A customer is the party an order is billed to. Online shoppers may or may
not have a login; when they do, ``user`` links the two.
"""

from common.models import TimeStampedModel
from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models


class Customer(TimeStampedModel):
    tenant = models.ForeignKey("tenants.Tenant", related_name="customers", on_delete=models.CASCADE)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="customer_records",
    )
    full_name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(
        max_length=16,
        blank=True,
        validators=[RegexValidator(r"^\+?[1-9]\d{1,14}$", message="Use E.164 format (e.g., +5511987654321)")],
    )
    tax_id = models.CharField(max_length=20, blank=True, help_text="Digits only")

    class Meta:
        ordering = ["full_name", "id"]
        indexes = [
            models.Index(fields=["tenant", "email"], name="customer_cu_tenant__2d7e1a_idx"),
            models.Index(fields=["tenant", "tax_id"], name="customer_cu_tenant__6b9f3c_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "tax_id"],
                condition=~models.Q(tax_id=""),
                name="unique_customer_tax_id_per_tenant",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.full_name} <{self.email or '-'}>"
