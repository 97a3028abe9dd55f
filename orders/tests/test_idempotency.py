import pytest
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from orders.models import IdempotencyKey
from orders.services import with_idempotency


def run(handler, *, key="key-1", session_id=None, request_hash="h1"):
    return with_idempotency(
        key=key,
        user=AnonymousUser(),
        path="/api/v1/stores/s/orders/checkout/",
        method="post",
        handler=handler,
        request_hash=request_hash,
        session_id=session_id,
    )


@pytest.mark.django_db
def test_stored_response_is_replayed_once_per_session():
    calls = []

    def handler():
        calls.append(1)
        return {"ok": len(calls)}, 201

    assert run(handler, session_id="a") == ({"ok": 1}, 201)
    assert run(handler, session_id="a") == ({"ok": 1}, 201)
    assert run(handler, session_id="b") == ({"ok": 2}, 201)
    assert IdempotencyKey.objects.get(scope="session:a").response_code == 201


@pytest.mark.django_db
def test_unhandled_error_releases_the_key():
    def failing():
        raise DatabaseError("connection lost")

    with pytest.raises(DatabaseError):
        run(failing, session_id="a")
    assert not IdempotencyKey.objects.exists()

    assert run(lambda: ({"ok": True}, 201), session_id="a") == ({"ok": True}, 201)


@pytest.mark.django_db
def test_server_error_releases_the_key_but_client_error_is_kept():
    assert run(lambda: ({"kind": "dependency_unavailable"}, 503), key="k5") == ({"kind": "dependency_unavailable"}, 503)
    assert not IdempotencyKey.objects.filter(key="k5").exists()

    run(lambda: ({"kind": "validation"}, 400), key="k4")
    assert run(lambda: ({"kind": "other"}, 201), key="k4") == ({"kind": "validation"}, 400)
