"""Configurable fake instrument generator for development and testing.

Produces deterministic codes without any external call and can be told to
fail, which is how the non-fatal payment path at checkout is exercised.
"""

from common.money import quantize

from .port import EMPTY_INSTRUMENT, PaymentInstrument, PaymentInstrumentGenerator


class PaymentInstrumentUnavailable(Exception):
    pass


class FakeInstrumentGenerator(PaymentInstrumentGenerator):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment provider unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment provider unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def generate(self, settings, amount, order_ref, customer=None, shipping_address=None):
        self.calls.append({"tenant_id": settings.tenant_id, "amount": quantize(amount), "order_ref": order_ref})
        if not self.should_succeed:
            raise PaymentInstrumentUnavailable(self.failure_reason)
        if not settings.payment_key:
            return EMPTY_INSTRUMENT
        code = f"FAKE-{order_ref}-{quantize(amount)}"
        return PaymentInstrument(human_code=code, scannable_code=f"qr:{code}", raw_key=settings.payment_key)
