import threading
from unittest.mock import Mock

import pytest
import requests

from ismapos.api_client import ApiClient
from ismapos.session import Session, SessionStore

from .helpers import make_response


@pytest.fixture
def http():
    """Stand-in for ``requests.Session``; tests set ``request`` behaviour."""
    fake = Mock(spec=requests.Session)
    fake.request.return_value = make_response(200, [])
    return fake


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "session.json")


@pytest.fixture
def signed_in_session(store):
    session = Session(token="tok-123", user={"id": "u1", "username": "cashier1", "role": "cashier"})
    store.save(session)
    return session


@pytest.fixture
def redirects():
    return []


@pytest.fixture
def client(http, store, signed_in_session, redirects):
    return ApiClient(
        "http://pos.test/api",
        session=signed_in_session,
        store=store,
        on_unauthorized=redirects.append,
        http=http,
    )


@pytest.fixture
def blocking_backend(http):
    """Backend whose GETs block until ``release`` is set."""

    class Backend:
        entered = threading.Event()
        release = threading.Event()
        response = make_response(200, [{"id": "s1", "subtotal": "10", "total": "10"}])
        error = None

        def __call__(self, method, url, **kwargs):
            self.entered.set()
            assert self.release.wait(5), "backend never released"
            if self.error is not None:
                raise self.error
            return self.response

    backend = Backend()
    http.request.side_effect = backend
    return backend
