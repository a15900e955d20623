import copy

import pytest

from application.identity import IdentityResolver
from core.errors import IdentityNotFoundError, RemoteRequestError

USER_ID = "0f5c1a4e-2b3d-4e5f-8a9b-0c1d2e3f4a5b"


class FakeTransport:
    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def request(self, method, path, body=None, query=None, headers=None):
        self.calls.append((method, path, query))
        resp = self.routes[(method, path)]
        if isinstance(resp, list):
            resp = resp.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return copy.deepcopy(resp)


def test_directory_id_needs_no_request():
    transport = FakeTransport({})

    assert IdentityResolver(transport).resolve(USER_ID) == USER_ID
    assert transport.calls == []


def test_direct_lookup():
    transport = FakeTransport({("GET", "/users/alice%40contoso.com"): {"id": "u-alice"}})

    assert IdentityResolver(transport).resolve("alice@contoso.com") == "u-alice"
    assert transport.calls == [("GET", "/users/alice%40contoso.com", {"$select": "id"})]


def test_falls_back_to_filtered_search():
    transport = FakeTransport(
        {
            ("GET", "/users/bob%40contoso.com"): RemoteRequestError("not found", status=404),
            ("GET", "/users"): {"value": [{"id": "u-bob"}]},
        }
    )

    assert IdentityResolver(transport).resolve("bob@contoso.com") == "u-bob"
    assert len(transport.calls) == 2
    query = transport.calls[1][2]
    assert query["$filter"] == "mail eq 'bob@contoso.com' or userPrincipalName eq 'bob@contoso.com'"
    assert query["$select"] == "id"


def test_filter_literal_escapes_quotes():
    transport = FakeTransport(
        {
            ("GET", "/users/o%27neil%40contoso.com"): {},
            ("GET", "/users"): {"value": [{"id": "u-o"}]},
        }
    )

    assert IdentityResolver(transport).resolve("o'neil@contoso.com") == "u-o"
    assert "o''neil@contoso.com" in transport.calls[1][2]["$filter"]


def test_not_found():
    transport = FakeTransport(
        {
            ("GET", "/users/ghost%40contoso.com"): RemoteRequestError("not found", status=404),
            ("GET", "/users"): {"value": []},
        }
    )

    with pytest.raises(IdentityNotFoundError) as exc:
        IdentityResolver(transport).resolve("ghost@contoso.com")
    assert str(exc.value) == "Could not find user with email/ID: ghost@contoso.com"


def test_search_failure_is_reported_as_not_found():
    transport = FakeTransport(
        {
            ("GET", "/users/x%40contoso.com"): RemoteRequestError("forbidden", status=403),
            ("GET", "/users"): RemoteRequestError("forbidden", status=403),
        }
    )

    with pytest.raises(IdentityNotFoundError):
        IdentityResolver(transport).resolve("x@contoso.com")


def test_empty_identifier_fails_without_request():
    transport = FakeTransport({})

    with pytest.raises(IdentityNotFoundError):
        IdentityResolver(transport).resolve("  ")
    assert transport.calls == []


def test_resolve_many_looks_up_each_identifier_once():
    transport = FakeTransport({("GET", "/users/a%40contoso.com"): [{"id": "u-a"}]})

    ids = IdentityResolver(transport).resolve_many(["a@contoso.com", USER_ID, "a@contoso.com"])

    assert ids == ["u-a", USER_ID, "u-a"]
    assert len(transport.calls) == 1
