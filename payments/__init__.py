"""Payment instrument generator factory.

``get_instrument_generator()`` builds the adapter named by the
``PAYMENT_INSTRUMENT_GENERATOR`` setting once and reuses it;
``set_instrument_generator()`` and ``reset_instrument_generator()`` let
tests swap it.
"""

from django.conf import settings
from django.utils.module_loading import import_string

from .port import PaymentInstrumentGenerator

_current_generator: PaymentInstrumentGenerator | None = None


def get_instrument_generator() -> PaymentInstrumentGenerator:
    global _current_generator
    if _current_generator is None:
        _current_generator = import_string(settings.PAYMENT_INSTRUMENT_GENERATOR)()
    return _current_generator


def set_instrument_generator(generator: PaymentInstrumentGenerator) -> None:
    global _current_generator
    _current_generator = generator


def reset_instrument_generator() -> None:
    global _current_generator
    _current_generator = None
