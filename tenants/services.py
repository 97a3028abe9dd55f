"""Tenant commerce configuration loading."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from common.errors import NotFound, ValidationFailed

from .models import CommerceConfig, Tenant


@dataclass(frozen=True)
class CommerceSettings:
    """Immutable snapshot of a tenant's commerce configuration.

    Loaded once per checkout and passed explicitly through the pipeline.
    """

    tenant_id: int
    tenant_name: str
    payment_key: str
    merchant_name: str
    merchant_city: str
    min_order_value: Optional[Decimal]
    free_shipping_above: Optional[Decimal]
    default_partner_id: Optional[int]
    commission_percent: Decimal


def get_tenant(*, slug: str) -> Tenant:
    try:
        return Tenant.objects.get(slug=slug, status=Tenant.STATUS_ACTIVE)
    except Tenant.DoesNotExist:
        raise NotFound("Store not found.")


def load_commerce_settings(*, tenant: Tenant) -> CommerceSettings:
    """Return the tenant's commerce settings; fail when online sales are not configured."""

    try:
        cfg = CommerceConfig.objects.get(tenant=tenant, is_enabled=True)
    except CommerceConfig.DoesNotExist:
        raise ValidationFailed("This store is not configured for online sales.")
    return CommerceSettings(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        payment_key=cfg.payment_key,
        merchant_name=cfg.merchant_name or tenant.name,
        merchant_city=cfg.merchant_city,
        min_order_value=cfg.min_order_value,
        free_shipping_above=cfg.free_shipping_above,
        default_partner_id=cfg.default_partner_id,
        commission_percent=cfg.commission_percent or Decimal("0"),
    )
