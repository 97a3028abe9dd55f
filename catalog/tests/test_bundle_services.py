import pytest
from catalog.models import BundleComponent
from catalog.services import add_component, remove_component, set_components
from catalog.tests.factories import ItemFactory
from common.errors import NotFound, ValidationFailed
from tenants.tests.factories import TenantFactory


@pytest.mark.django_db
def test_set_components_replaces_children_and_flags_bundle():
    tenant = TenantFactory()
    bundle = ItemFactory(tenant=tenant)
    a, b, c = ItemFactory.create_batch(3, tenant=tenant)
    set_components(bundle=bundle, components=[(a.id, 1)])

    rows = set_components(bundle=bundle, components=[(b.id, 2), (c.id, 1)])

    bundle.refresh_from_db()
    assert bundle.is_bundle is True
    assert [(r.component_id, r.quantity, r.sort_order) for r in rows] == [(b.id, 2, 0), (c.id, 1, 1)]
    assert not BundleComponent.objects.filter(bundle=bundle, component=a).exists()


@pytest.mark.django_db
def test_set_components_with_empty_list_clears_flag():
    tenant = TenantFactory()
    bundle = ItemFactory(tenant=tenant)
    set_components(bundle=bundle, components=[(ItemFactory(tenant=tenant).id, 1)])

    set_components(bundle=bundle, components=[])

    bundle.refresh_from_db()
    assert bundle.is_bundle is False


@pytest.mark.django_db
def test_add_component_appends_after_last():
    tenant = TenantFactory()
    bundle = ItemFactory(tenant=tenant)
    a, b = ItemFactory.create_batch(2, tenant=tenant)

    first = add_component(bundle=bundle, component_id=a.id, quantity=2)
    second = add_component(bundle=bundle, component_id=b.id)

    bundle.refresh_from_db()
    assert bundle.is_bundle is True
    assert (first.sort_order, second.sort_order) == (0, 1)


@pytest.mark.django_db
def test_add_component_rejects_self_and_cycles():
    tenant = TenantFactory()
    outer = ItemFactory(tenant=tenant)
    inner = ItemFactory(tenant=tenant)
    add_component(bundle=outer, component_id=inner.id)

    with pytest.raises(ValidationFailed):
        add_component(bundle=outer, component_id=outer.id)
    with pytest.raises(ValidationFailed):
        add_component(bundle=inner, component_id=outer.id)


@pytest.mark.django_db
def test_add_component_rejects_other_store_items():
    bundle = ItemFactory()
    foreign = ItemFactory(tenant=TenantFactory())

    with pytest.raises(NotFound):
        add_component(bundle=bundle, component_id=foreign.id)


@pytest.mark.django_db
def test_remove_last_component_clears_flag():
    tenant = TenantFactory()
    bundle = ItemFactory(tenant=tenant)
    a, b = ItemFactory.create_batch(2, tenant=tenant)
    set_components(bundle=bundle, components=[(a.id, 1), (b.id, 1)])

    remove_component(bundle=bundle, component_id=a.id)
    bundle.refresh_from_db()
    assert bundle.is_bundle is True

    remove_component(bundle=bundle, component_id=b.id)
    bundle.refresh_from_db()
    assert bundle.is_bundle is False

    with pytest.raises(NotFound):
        remove_component(bundle=bundle, component_id=b.id)
