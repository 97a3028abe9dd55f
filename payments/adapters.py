"""Payment instrument adapter that exposes the store's payment key."""

from .port import EMPTY_INSTRUMENT, PaymentInstrument, PaymentInstrumentGenerator


class KeyOnlyInstrumentGenerator(PaymentInstrumentGenerator):
    """Hands the shopper the store's payment key with no encoded payload.

    Stores without a payment key get an empty instrument.
    """

    def generate(self, settings, amount, order_ref, customer=None, shipping_address=None):
        if not settings.payment_key:
            return EMPTY_INSTRUMENT
        return PaymentInstrument(raw_key=settings.payment_key)
