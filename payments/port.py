"""Payment instrument port.

Turns an amount owed for an order into something the shopper can pay with
(a PIX copy-and-paste code, a QR payload). Encoding is the adapter's
business; checkout treats the result as opaque.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from customer.ports import CustomerRecord
from tenants.services import CommerceSettings


@dataclass(frozen=True)
class PaymentInstrument:
    human_code: Optional[str] = None
    scannable_code: Optional[str] = None
    raw_key: Optional[str] = None

    def as_dict(self) -> dict:
        return {"human_code": self.human_code, "scannable_code": self.scannable_code, "raw_key": self.raw_key}


EMPTY_INSTRUMENT = PaymentInstrument()


class PaymentInstrumentGenerator(ABC):
    @abstractmethod
    def generate(
        self,
        settings: CommerceSettings,
        amount: Decimal,
        order_ref: str,
        customer: Optional[CustomerRecord] = None,
        shipping_address: Optional[dict] = None,
    ) -> PaymentInstrument:
        """Build the instrument for ``amount``; may raise on failure."""
