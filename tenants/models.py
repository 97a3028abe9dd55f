"""Tenant (store) models.

Every cart, order and catalog item belongs to exactly one tenant. The
commerce configuration holds the knobs checkout needs; it is optional so a
store can exist before it sells online.
"""

from common.choices import ActiveInactive
from common.models import TimeStampedModel
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Tenant(TimeStampedModel):
    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    slug = models.SlugField(max_length=80, unique=True)
    name = models.CharField(max_length=200)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Partner(TimeStampedModel):
    """Fulfillment partner earning commission on the orders it serves."""

    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    tenant = models.ForeignKey(Tenant, related_name="partners", on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant", "status"], name="tenants_par_tenant__9b1c2e_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} ({self.tenant_id})"


class CommerceConfig(TimeStampedModel):
    """Per-tenant online sales configuration."""

    tenant = models.OneToOneField(Tenant, related_name="commerce_config", on_delete=models.CASCADE)
    is_enabled = models.BooleanField(default=True)
    payment_key = models.CharField(max_length=140, blank=True, help_text="Merchant key used for instant payments")
    merchant_name = models.CharField(max_length=60, blank=True)
    merchant_city = models.CharField(max_length=40, blank=True)
    min_order_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    free_shipping_above = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    default_partner = models.ForeignKey(
        Partner,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_for_configs",
    )
    commission_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Overrides per-item commission rates when set above zero",
    )

    class Meta:
        constraints = [
            models.CheckConstraint(
                name="commerce_min_order_non_negative",
                condition=models.Q(min_order_value__isnull=True) | models.Q(min_order_value__gte=0),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"CommerceConfig<{self.tenant_id}>"
