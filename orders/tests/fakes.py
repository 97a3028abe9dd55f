"""Collaborator fakes and a checkout shortcut shared by the order tests."""

from cart.services import add_item
from common.errors import DependencyUnavailable
from customer.services import CustomerHints
from inventory.ports import StockLedger
from orders.checkout import CheckoutOrchestrator, CheckoutParams
from payments.fake_adapter import FakeInstrumentGenerator
from scheduling.ports import Scheduler
from tenants.tests.factories import CommerceConfigFactory


class FailingStockLedger(StockLedger):
    def __init__(self):
        self.attempts = 0

    def record(self, tenant_id, item_id, signed_quantity, order_ref=None, actor_id=None, reason=None, **kwargs):
        self.attempts += 1
        raise DependencyUnavailable("Stock ledger is down.")

    def unreversed_sales_for_order(self, order_ref):
        return []


class FailingScheduler(Scheduler):
    def book(self, request):
        raise DependencyUnavailable("Scheduling is down.")

    def cancel_for_order(self, order_ref):
        return 0


def open_store(tenant, **config):
    CommerceConfigFactory(tenant=tenant, **config)
    return tenant


def fill_cart(tenant, *lines, session_id="s1"):
    """Add ``(item, quantity)`` pairs to a guest cart."""

    for item, quantity in lines:
        add_item(tenant_id=tenant.id, item_id=item.id, quantity=quantity, session_id=session_id)


def place_order(tenant, *, session_id="s1", hints=None, orchestrator=None, **params):
    orchestrator = orchestrator or CheckoutOrchestrator(payments=FakeInstrumentGenerator())
    return orchestrator.create_order(
        CheckoutParams(
            tenant=tenant,
            customer=hints or CustomerHints(name="Ana Souza", email="ana@example.com"),
            session_id=session_id,
            **params,
        )
    )
