import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from app.client.messages import client_message
from app.client.submission import SessionBootstrap
from app.config import settings

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithCustomToken"


class HandoffError(Exception):
    pass


@dataclass
class LiveSession:
    uid: str
    id_token: str
    refresh_token: Optional[str]
    expires_in: int


class SessionHandoff:
    """
    Turns a SessionBootstrap into a signed-in Firebase session.

    Uses the token from the provisioning response when the bootstrap still
    carries it, otherwise re-mints one with the single-use handoff code.
    Failures are not retried: ``return_to_entry`` is called with the error
    text and HandoffError is raised.
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        sign_in_url: str = SIGN_IN_URL,
        return_to_entry: Callable[[str], None] | None = None,
        locale: str | None = None,
    ):
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=settings.SUBMIT_TIMEOUT_SECONDS)
        self.base_url = (settings.API_BASE_URL if base_url is None else base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.FIREBASE_WEB_API_KEY
        self.sign_in_url = sign_in_url
        self.return_to_entry = return_to_entry
        self.locale = locale or settings.CLIENT_LOCALE

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    def __enter__(self) -> "SessionHandoff":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def fetch_token(self, bootstrap: SessionBootstrap) -> str:
        response = self.http_client.post(
            f"{self.base_url}/createCustomToken",
            json={"uid": bootstrap.uid, "code": bootstrap.handoff_code},
        )
        data = _json_or_empty(response)
        if response.status_code != 200:
            raise HandoffError(data.get("error") or f"Failed to fetch custom token: {response.status_code}")
        token = data.get("token")
        if not token or not isinstance(token, str):
            raise HandoffError("Invalid token response")
        return token

    def sign_in(self, uid: str, token: str) -> LiveSession:
        if not self.api_key:
            raise HandoffError("FIREBASE_WEB_API_KEY is not configured")
        response = self.http_client.post(
            self.sign_in_url,
            params={"key": self.api_key},
            json={"token": token, "returnSecureToken": True},
        )
        data = _json_or_empty(response)
        if response.status_code != 200:
            error = data.get("error")
            reason = error.get("message") if isinstance(error, dict) else None
            raise HandoffError(reason or f"Sign-in failed: {response.status_code}")
        if not data.get("idToken"):
            raise HandoffError("Sign-in response missing idToken")
        return LiveSession(
            uid=uid,
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_in=int(data.get("expiresIn") or 0),
        )

    def complete(self, bootstrap: SessionBootstrap | None) -> LiveSession:
        if bootstrap is None or not bootstrap.uid:
            self._fail(client_message("handoff_missing", self.locale))

        try:
            token = bootstrap.custom_token or self.fetch_token(bootstrap)
            session = self.sign_in(bootstrap.uid, token)
        except (HandoffError, httpx.HTTPError) as exc:
            logger.error("Session handoff failed for uid=%s: %s", bootstrap.uid, exc)
            self._fail(client_message("handoff_failed", self.locale, reason=str(exc)), exc)

        bootstrap.discard_token()
        logger.info("Signed in uid=%s", bootstrap.uid)
        return session

    def _fail(self, message: str, cause: Exception | None = None):
        if self.return_to_entry:
            self.return_to_entry(message)
        raise HandoffError(message) from cause


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
