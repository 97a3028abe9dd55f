"""Customer directory port."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CustomerRecord:
    id: int
    full_name: str
    email: str
    phone: str
    tax_id: str


class CustomerDirectory(ABC):
    @abstractmethod
    def get_by_id(self, tenant_id: int, customer_id: int) -> Optional[CustomerRecord]: ...

    @abstractmethod
    def find_by_tax_id(self, tenant_id: int, tax_id: str) -> Optional[CustomerRecord]: ...

    @abstractmethod
    def find_by_email(self, tenant_id: int, email: str) -> Optional[CustomerRecord]: ...

    @abstractmethod
    def create(
        self,
        tenant_id: int,
        *,
        full_name: str,
        email: str = "",
        phone: str = "",
        tax_id: str = "",
        user_id: Optional[int] = None,
    ) -> CustomerRecord: ...
