"""
Server-side provisioning of provider and requester accounts.

The sequence is fixed: validate, parse tags, normalize the phone number,
create the identity principal, write the profile document, store the
profile image, mint a sign-in token and issue a handoff code. Every step
after principal creation registers a compensating action so that a
failure leaves no orphaned principal or profile behind. Losing the image
is tolerated: the account stays usable without its photo.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy.orm import Session

from app.config import settings
from app.models.provisioning_request import ProvisioningRequest
from app.schemas.registration import Role
from app.services.errors import DuplicateRequestError, RegistrationValidationError
from app.services.field_validator import (
    check_profile_image,
    image_extension,
    message_for,
    normalize_phone,
    parse_age,
    parse_location,
    parse_service_area,
    parse_tags,
    validate_registration,
)
from app.services.handoff_service import issue_handoff_code
from app.services.saga import CompensationStack
from app.services.spaces_service import profile_image_name, profile_image_path

logger = logging.getLogger(__name__)

MAX_REQUEST_ID_LENGTH = 128


def _credentials_hash(email: Any, phone: str) -> str:
    email = str(email or "").strip().lower()
    normalized = f"{email}\n{phone}"
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass
class UploadedImage:
    filename: str | None
    content_type: str | None
    data: bytes


@dataclass
class ProvisioningResult:
    uid: str
    custom_token: str
    handoff_code: str
    replayed: bool = False


class ProvisioningService:
    def __init__(self, identity, profiles, images, db: Session):
        self.identity = identity
        self.profiles = profiles
        self.images = images
        self.db = db

    def provision(
        self,
        role: Role,
        fields: Mapping[str, Any],
        image: UploadedImage | None,
        request_id: str | None = None,
    ) -> ProvisioningResult:
        self._validate(fields, image)
        tags = self._parse_tags(role, fields.get("tags"))
        request_id = self._clean_request_id(request_id)

        phone = normalize_phone(fields.get("phone"))
        credentials_hash = _credentials_hash(fields.get("email"), phone)
        if request_id:
            replay = self._replay(role, request_id, credentials_hash)
            if replay:
                return replay

        uid = self.identity.create_principal(
            email=str(fields["email"]).strip(),
            password=str(fields["password"]),
            display_name=str(fields["fullName"]).strip(),
            phone_number=phone,
        )
        logger.info("Created %s principal uid=%s", role.value, uid)

        saga = CompensationStack(f"{role.value} provisioning uid={uid}")
        saga.push("delete principal", lambda: self.identity.delete_principal(uid))
        try:
            extension = image_extension(image.filename)
            document = self._build_document(role, uid, fields, phone, tags, extension)
            self.profiles.save_profile(role.collection, uid, document)
            saga.push("delete profile", lambda: self.profiles.delete_profile(role.collection, uid))
            logger.info("Saved %s profile uid=%s", role.value, uid)

            self._store_image(role, uid, extension, image, saga)

            if request_id:
                self.db.add(
                    ProvisioningRequest(
                        request_id=request_id,
                        role=role.value,
                        uid=uid,
                        credentials_hash=credentials_hash,
                        expires_at=datetime.utcnow() + timedelta(seconds=settings.REQUEST_ID_TTL_SECONDS),
                    )
                )
            custom_token = self.identity.mint_custom_token(uid)
            handoff_code = issue_handoff_code(self.db, uid)
            self.db.commit()
        except Exception:
            logger.exception("Provisioning failed after principal creation; unwinding uid=%s", uid)
            self.db.rollback()
            saga.unwind()
            raise

        saga.clear()
        logger.info("Provisioned %s uid=%s", role.value, uid)
        return ProvisioningResult(uid=uid, custom_token=custom_token, handoff_code=handoff_code)

    def _validate(self, fields: Mapping[str, Any], image: UploadedImage | None) -> None:
        errors = validate_registration(fields)
        image_error = check_profile_image(
            image.filename if image else None,
            image.content_type if image else None,
            len(image.data) if image else None,
        )
        if image_error:
            errors["profileImage"] = image_error
        if errors:
            raise RegistrationValidationError("Validation failed", errors=errors)

    def _parse_tags(self, role: Role, raw: Any) -> list[str]:
        if role is not Role.provider:
            return []
        tags = parse_tags(raw)
        if not tags:
            raise RegistrationValidationError(message_for("tags_missing"))
        return tags

    def _clean_request_id(self, request_id: str | None) -> str | None:
        if request_id is None:
            return None
        cleaned = request_id.strip()
        if len(cleaned) > MAX_REQUEST_ID_LENGTH:
            raise RegistrationValidationError(
                "Invalid requestId",
                errors={"requestId": f"requestId must be at most {MAX_REQUEST_ID_LENGTH} characters"},
            )
        return cleaned or None

    def _replay(self, role: Role, request_id: str, credentials_hash: str) -> ProvisioningResult | None:
        record = self.db.get(ProvisioningRequest, request_id)
        if not record:
            return None
        if record.expires_at <= datetime.utcnow():
            logger.warning("Refused replay of expired request %s", request_id)
            raise DuplicateRequestError("requestId expired; start a new registration")
        if record.role != role.value:
            raise DuplicateRequestError("requestId already used for a different account type")
        if not hmac.compare_digest(record.credentials_hash, credentials_hash):
            logger.warning("Refused replay of request %s with different credentials", request_id)
            raise DuplicateRequestError("requestId already used for a different account")

        logger.info("Replaying provisioning request %s for uid=%s", request_id, record.uid)
        custom_token = self.identity.mint_custom_token(record.uid)
        handoff_code = issue_handoff_code(self.db, record.uid)
        self.db.commit()
        return ProvisioningResult(
            uid=record.uid,
            custom_token=custom_token,
            handoff_code=handoff_code,
            replayed=True,
        )

    def _build_document(
        self,
        role: Role,
        uid: str,
        fields: Mapping[str, Any],
        phone: str,
        tags: list[str],
        extension: str,
    ) -> dict:
        # Both parse cleanly here, validation already ran
        location = parse_location(fields.get("location"))
        service_area = parse_service_area(fields.get("serviceArea"))

        # Never store the password
        document = {
            "uid": uid,
            "type": role.value,
            "fullName": str(fields["fullName"]).strip(),
            "email": str(fields["email"]).strip(),
            "age": parse_age(fields.get("age")),
            "phone": phone,
            "profileImagePath": profile_image_path(role.value, uid, extension),
            "createdAt": self.profiles.server_timestamp(),
            "location": self.profiles.geo_point(location),
            "serviceArea": [self.profiles.geo_point(point) for point in service_area],
        }
        if role is Role.provider:
            document.update({"tags": tags, "rating": 0, "reviewsCount": 0})
        return document

    def _store_image(
        self,
        role: Role,
        uid: str,
        extension: str,
        image: UploadedImage,
        saga: CompensationStack,
    ) -> None:
        name = profile_image_name(role.value, uid, extension)
        try:
            self.images.save(name, image.data, image.content_type)
        except Exception:
            logger.exception("Failed to store profile image for uid=%s; account kept without it", uid)
            return
        saga.push("delete profile image", lambda: self.images.delete(name))
        logger.info("Stored profile image %s", name)
