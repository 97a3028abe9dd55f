from decimal import Decimal

import pytest
from django.test import override_settings
from payments import get_instrument_generator, reset_instrument_generator
from payments.adapters import KeyOnlyInstrumentGenerator
from payments.fake_adapter import FakeInstrumentGenerator, PaymentInstrumentUnavailable
from tenants.services import CommerceSettings


def _settings(payment_key="pix@example.com"):
    return CommerceSettings(
        tenant_id=1,
        tenant_name="Store",
        payment_key=payment_key,
        merchant_name="Store",
        merchant_city="Sao Paulo",
        min_order_value=None,
        free_shipping_above=None,
        default_partner_id=None,
        commission_percent=Decimal("0"),
    )


@pytest.fixture(autouse=True)
def _fresh_generator():
    reset_instrument_generator()
    yield
    reset_instrument_generator()


def test_key_only_returns_nulls_without_payment_key():
    instrument = KeyOnlyInstrumentGenerator().generate(_settings(payment_key=""), Decimal("10.00"), "ORD-000001")
    assert instrument.as_dict() == {"human_code": None, "scannable_code": None, "raw_key": None}


def test_key_only_exposes_the_store_key():
    instrument = KeyOnlyInstrumentGenerator().generate(_settings(), Decimal("10.00"), "ORD-000001")
    assert instrument.raw_key == "pix@example.com"


def test_fake_generator_is_deterministic_and_can_fail():
    fake = FakeInstrumentGenerator()
    first = fake.generate(_settings(), Decimal("19.9"), "ORD-000007")
    second = fake.generate(_settings(), Decimal("19.90"), "ORD-000007")
    assert first == second
    assert first.human_code == "FAKE-ORD-000007-19.90"

    fake.configure(should_succeed=False, failure_reason="down")
    with pytest.raises(PaymentInstrumentUnavailable, match="down"):
        fake.generate(_settings(), Decimal("1.00"), "ORD-000008")
    assert len(fake.calls) == 3


def test_factory_builds_configured_generator_once():
    generator = get_instrument_generator()
    assert isinstance(generator, FakeInstrumentGenerator)
    assert get_instrument_generator() is generator


@override_settings(PAYMENT_INSTRUMENT_GENERATOR="payments.adapters.KeyOnlyInstrumentGenerator")
def test_factory_follows_setting():
    assert isinstance(get_instrument_generator(), KeyOnlyInstrumentGenerator)
