"""Customer resolution for checkout.

Keep business rules here and keep views thin.
"""

import re
from dataclasses import dataclass
from typing import Optional

from common.errors import NotFound, ValidationFailed

from .ports import CustomerDirectory, CustomerRecord

DEFAULT_CUSTOMER_NAME = "Online customer"


@dataclass(frozen=True)
class CustomerHints:
    """Identity hints supplied by the caller at checkout."""

    id: Optional[int] = None
    tax_id: str = ""
    email: str = ""
    name: str = ""
    phone: str = ""

    def is_empty(self) -> bool:
        return not (self.id or self.tax_id or self.email or self.name)


def normalize_tax_id(value: Optional[str]) -> str:
    """Strip punctuation from a tax id (``123.456.789-09`` -> ``12345678909``)."""

    return re.sub(r"\D", "", value or "")


def resolve_customer(
    *, directory: CustomerDirectory, tenant_id: int, hints: CustomerHints, user_id: Optional[int] = None
) -> CustomerRecord:
    """Find or create the customer an order is billed to.

    Priority: explicit id, then tax id match, then email match, then a new
    record built from the hints.
    """

    if hints.is_empty():
        raise ValidationFailed("Customer identity is required (id, tax id, email or name).")

    if hints.id:
        found = directory.get_by_id(tenant_id, hints.id)
        if found is None:
            raise NotFound("Customer not found.")
        return found

    tax_id = normalize_tax_id(hints.tax_id)
    if tax_id:
        found = directory.find_by_tax_id(tenant_id, tax_id)
        if found is not None:
            return found

    email = (hints.email or "").strip().lower()
    if email:
        found = directory.find_by_email(tenant_id, email)
        if found is not None:
            return found

    return directory.create(
        tenant_id,
        full_name=(hints.name or "").strip() or DEFAULT_CUSTOMER_NAME,
        email=email,
        phone=(hints.phone or "").strip(),
        tax_id=tax_id,
        user_id=user_id,
    )
