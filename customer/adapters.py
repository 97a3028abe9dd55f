"""Django ORM implementation of the customer directory."""

from typing import Optional

from common.errors import DependencyUnavailable
from django.db import DatabaseError

from .models import Customer
from .ports import CustomerDirectory, CustomerRecord


def to_record(customer: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=customer.id,
        full_name=customer.full_name,
        email=customer.email,
        phone=customer.phone,
        tax_id=customer.tax_id,
    )


class DjangoCustomerDirectory(CustomerDirectory):
    def _first(self, **lookup) -> Optional[CustomerRecord]:
        try:
            customer = Customer.objects.filter(**lookup).order_by("id").first()
        except DatabaseError as exc:
            raise DependencyUnavailable("Customer directory is temporarily unavailable.") from exc
        return to_record(customer) if customer else None

    def get_by_id(self, tenant_id, customer_id):
        return self._first(tenant_id=tenant_id, id=customer_id)

    def find_by_tax_id(self, tenant_id, tax_id):
        return self._first(tenant_id=tenant_id, tax_id=tax_id)

    def find_by_email(self, tenant_id, email):
        return self._first(tenant_id=tenant_id, email__iexact=email)

    def create(self, tenant_id, *, full_name, email="", phone="", tax_id="", user_id=None):
        try:
            customer = Customer.objects.create(
                tenant_id=tenant_id,
                full_name=full_name,
                email=email,
                phone=phone,
                tax_id=tax_id,
                user_id=user_id,
            )
        except DatabaseError as exc:
            raise DependencyUnavailable("Customer directory is temporarily unavailable.") from exc
        return to_record(customer)
