from datetime import timedelta

import factory
from cart.models import Cart, CartLine
from django.contrib.auth import get_user_model
from django.utils import timezone
from factory.django import DjangoModelFactory


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()

    username = factory.Sequence(lambda n: f"shopper{n}")
    email = factory.Faker("email")
    password = factory.PostGenerationMethodCall("set_password", "pass")


class CartFactory(DjangoModelFactory):
    class Meta:
        model = Cart

    tenant = factory.SubFactory("tenants.tests.factories.TenantFactory")
    user = None
    session_id = factory.Sequence(lambda n: f"session-{n}")
    expires_at = factory.LazyFunction(lambda: timezone.now() + timedelta(hours=72))


class CartLineFactory(DjangoModelFactory):
    class Meta:
        model = CartLine

    cart = factory.SubFactory(CartFactory)
    item = factory.SubFactory("catalog.tests.factories.ItemFactory", tenant=factory.SelfAttribute("..cart.tenant"))
    quantity = 1
    unit_price = factory.LazyAttribute(lambda o: o.item.effective_price)
