from decimal import Decimal

import factory
from factory.django import DjangoModelFactory
from orders.models import Order, OrderLine


class OrderFactory(DjangoModelFactory):
    class Meta:
        model = Order

    tenant = factory.SubFactory("tenants.tests.factories.TenantFactory")
    customer = factory.SubFactory("customer.tests.factories.CustomerFactory", tenant=factory.SelfAttribute("..tenant"))
    number = factory.Sequence(lambda n: f"ORD-{n:06d}")
    subtotal = Decimal("20.00")
    total = Decimal("20.00")


class OrderLineFactory(DjangoModelFactory):
    class Meta:
        model = OrderLine

    order = factory.SubFactory(OrderFactory)
    item = factory.SubFactory("catalog.tests.factories.ItemFactory", tenant=factory.SelfAttribute("..order.tenant"))
    description = factory.LazyAttribute(lambda o: o.item.name)
    quantity = 2
    unit_price = Decimal("10.00")
    cost_price = Decimal("4.00")
    sort_order = factory.Sequence(lambda n: n)
