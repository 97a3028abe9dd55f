from decimal import Decimal

import factory
from factory import Faker
from factory.django import DjangoModelFactory
from tenants.models import CommerceConfig, Partner, Tenant


class TenantFactory(DjangoModelFactory):
    class Meta:
        model = Tenant
        django_get_or_create = ("slug",)

    name = Faker("company")
    slug = factory.Sequence(lambda n: f"store-{n}")


class PartnerFactory(DjangoModelFactory):
    class Meta:
        model = Partner

    tenant = factory.SubFactory(TenantFactory)
    name = Faker("name")
    email = Faker("email")


class CommerceConfigFactory(DjangoModelFactory):
    class Meta:
        model = CommerceConfig

    tenant = factory.SubFactory(TenantFactory)
    payment_key = "pix@example.com"
    merchant_name = "Example Store"
    merchant_city = "Sao Paulo"
    min_order_value = None
    free_shipping_above = None
    commission_percent = Decimal("0.00")
