import os
import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, exceptions, firestore
from google.api_core import exceptions as google_exceptions

from app.config import settings
from app.schemas.registration import GeoPoint
from app.services.errors import IdentityProviderError, ProfileStoreError

logger = logging.getLogger(__name__)

FIREBASE_CREDENTIALS_FILE = settings.FIREBASE_CREDENTIALS_FILE

firebase_app = None
if FIREBASE_CREDENTIALS_FILE and os.path.exists(FIREBASE_CREDENTIALS_FILE):
    cred = credentials.Certificate(FIREBASE_CREDENTIALS_FILE)
    firebase_app = firebase_admin.initialize_app(cred)
    logger.info("Firebase app initialized using %s", FIREBASE_CREDENTIALS_FILE)
else:
    logger.warning("Firebase credentials not configured. Account provisioning disabled.")


def _require_app():
    if not firebase_app:
        raise RuntimeError("Firebase app is not configured. Set FIREBASE_CREDENTIALS_FILE env.")
    return firebase_app


def _error_code(exc: Exception) -> str | None:
    code = getattr(exc, "code", None)
    return str(code) if code else None


class FirebaseIdentityProvider:
    """Creates principals and mints custom sign-in tokens through Firebase Auth."""

    def __init__(self, app=None):
        self.app = app or _require_app()

    def create_principal(
        self,
        *,
        email: str,
        password: str,
        display_name: str,
        phone_number: str,
    ) -> str:
        try:
            record = auth.create_user(
                email=email,
                email_verified=False,
                display_name=display_name,
                phone_number=phone_number,
                password=password,
                app=self.app,
            )
        except (exceptions.FirebaseError, ValueError) as exc:
            # Duplicate email/phone and weak passwords all land here
            logger.warning("Firebase refused principal creation: %s", exc)
            raise IdentityProviderError(str(exc), code=_error_code(exc)) from exc
        return record.uid

    def delete_principal(self, uid: str) -> None:
        try:
            auth.delete_user(uid, app=self.app)
        except exceptions.FirebaseError as exc:
            raise IdentityProviderError(str(exc), code=_error_code(exc)) from exc

    def mint_custom_token(self, uid: str) -> str:
        try:
            token = auth.create_custom_token(uid, app=self.app)
        except (exceptions.FirebaseError, ValueError) as exc:
            raise IdentityProviderError(str(exc), code=_error_code(exc)) from exc
        return token.decode("utf-8") if isinstance(token, bytes) else token


class FirestoreProfileStore:
    """Profile documents keyed by principal id, one collection per role."""

    def __init__(self, app=None):
        self.client = firestore.client(app or _require_app())

    def geo_point(self, point: GeoPoint) -> Any:
        return firestore.GeoPoint(point.lat, point.lng)

    def server_timestamp(self) -> Any:
        return firestore.SERVER_TIMESTAMP

    def save_profile(self, collection: str, uid: str, document: dict) -> None:
        try:
            self.client.collection(collection).document(uid).set(document)
        except google_exceptions.GoogleAPIError as exc:
            raise ProfileStoreError("Could not save profile", error=str(exc)) from exc

    def delete_profile(self, collection: str, uid: str) -> None:
        self.client.collection(collection).document(uid).delete()
