import httpx
import pytest

from app.client.handoff import SIGN_IN_URL, HandoffError, SessionHandoff
from app.client.submission import SessionBootstrap
from fakes import image_upload, registration_form


def _sign_in_ok(request):
    return httpx.Response(200, json={"idToken": "id-1", "refreshToken": "refresh-1", "expiresIn": "3600"})


def _router(routes, calls):
    def handler(request):
        calls.append((request.url.path, request))
        return routes[request.url.path](request)

    return handler


def _handoff(routes, calls, returned=None, api_key="web-key"):
    client = httpx.Client(transport=httpx.MockTransport(_router(routes, calls)))
    return SessionHandoff(
        http_client=client,
        base_url="http://api.test",
        api_key=api_key,
        return_to_entry=returned.append if returned is not None else None,
        locale="en",
    )


def test_provisioning_token_is_used_directly():
    calls = []
    handoff = _handoff({"/v1/accounts:signInWithCustomToken": _sign_in_ok}, calls)
    bootstrap = SessionBootstrap(uid="u1", custom_token="tok", handoff_code="code")

    session = handoff.complete(bootstrap)

    assert session.uid == "u1"
    assert session.id_token == "id-1"
    assert session.expires_in == 3600
    assert [path for path, _ in calls] == ["/v1/accounts:signInWithCustomToken"]
    request = calls[0][1]
    assert request.url.params["key"] == "web-key"
    assert b'"token":"tok"' in request.read().replace(b" ", b"")
    assert bootstrap.custom_token is None
    assert bootstrap.handoff_code is None


def test_missing_token_is_fetched_with_the_handoff_code():
    calls = []
    routes = {
        "/createCustomToken": lambda request: httpx.Response(200, json={"token": "fresh"}),
        "/v1/accounts:signInWithCustomToken": _sign_in_ok,
    }
    handoff = _handoff(routes, calls)

    session = handoff.complete(SessionBootstrap(uid="u1", handoff_code="code"))

    assert session.id_token == "id-1"
    assert [path for path, _ in calls] == ["/createCustomToken", "/v1/accounts:signInWithCustomToken"]
    assert b'"code":"code"' in calls[0][1].read().replace(b" ", b"")


def test_failure_returns_to_entry_without_retrying():
    calls, returned = [], []
    routes = {
        "/createCustomToken": lambda request: httpx.Response(
            403, json={"error": "Handoff code already used", "code": "handoff/code-used"}
        ),
    }
    handoff = _handoff(routes, calls, returned)

    with pytest.raises(HandoffError):
        handoff.complete(SessionBootstrap(uid="u1", handoff_code="code"))

    assert len(calls) == 1
    assert returned == ["Sign-in failed: Handoff code already used"]


def test_sign_in_rejection_uses_the_provider_reason():
    calls, returned = [], []
    routes = {
        "/v1/accounts:signInWithCustomToken": lambda request: httpx.Response(
            400, json={"error": {"message": "INVALID_CUSTOM_TOKEN"}}
        ),
    }
    handoff = _handoff(routes, calls, returned)

    with pytest.raises(HandoffError):
        handoff.complete(SessionBootstrap(uid="u1", custom_token="tok"))

    assert returned == ["Sign-in failed: INVALID_CUSTOM_TOKEN"]


def test_transport_error_is_reported_once():
    calls, returned = [], []

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    handoff = _handoff({"/v1/accounts:signInWithCustomToken": unreachable}, calls, returned)

    with pytest.raises(HandoffError):
        handoff.complete(SessionBootstrap(uid="u1", custom_token="tok"))

    assert len(calls) == 1
    assert len(returned) == 1


def test_missing_bootstrap_returns_to_entry():
    returned = []
    handoff = _handoff({}, [], returned)

    with pytest.raises(HandoffError):
        handoff.complete(None)

    assert returned == ["Account details not found. Please register again."]


def test_missing_api_key_fails_before_any_request():
    calls, returned = [], []
    handoff = _handoff({}, calls, returned, api_key="")

    with pytest.raises(HandoffError):
        handoff.complete(SessionBootstrap(uid="u1", custom_token="tok"))

    assert calls == []
    assert returned == ["Sign-in failed: FIREBASE_WEB_API_KEY is not configured"]


def test_fetch_token_against_the_api(client):
    created = client.post("/create-provider", data=registration_form(), files=image_upload()).json()
    handoff = SessionHandoff(http_client=client, base_url="http://testserver", api_key="web-key")

    token = handoff.fetch_token(SessionBootstrap(uid=created["uid"], handoff_code=created["handoffCode"]))

    assert token.startswith(f"token-{created['uid']}")
    with pytest.raises(HandoffError, match="already used"):
        handoff.fetch_token(SessionBootstrap(uid=created["uid"], handoff_code=created["handoffCode"]))


def test_sign_in_url_defaults_to_identity_toolkit():
    assert SIGN_IN_URL.startswith("https://identitytoolkit.googleapis.com/")


def test_handoff_closes_only_the_client_it_created():
    with SessionHandoff(base_url="http://api.test", api_key="web-key") as owned:
        created = owned.http_client
    assert created.is_closed

    injected = httpx.Client()
    SessionHandoff(http_client=injected, base_url="http://api.test").close()
    assert not injected.is_closed
    injected.close()
