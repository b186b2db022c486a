"""
Final submission of a completed registration wizard.

Preconditions are checked in a fixed order just before the request is
built. The request is multipart: scalar fields as form fields; tags,
location and service area as JSON strings; the image as a binary part
with its original filename. Every completed exchange ends in exactly one
outcome: success, application rejection or transport failure.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import httpx

from app.client.messages import client_message
from app.client.wizard import RegistrationWizard, WizardStep
from app.config import settings
from app.schemas.registration import Role
from app.services.field_validator import message_for, validate_personal_info

logger = logging.getLogger(__name__)

ENDPOINTS = {
    Role.provider: "/create-provider",
    Role.requester: "/create-requester",
}


class SubmissionOutcome(str, Enum):
    success = "success"
    blocked = "blocked"
    rejected = "rejected"
    timed_out = "timed_out"
    network_error = "network_error"


@dataclass
class SessionBootstrap:
    """What the handoff screen needs to turn a new account into a live session."""

    uid: str
    custom_token: Optional[str] = None
    handoff_code: Optional[str] = None

    def discard_token(self) -> None:
        self.custom_token = None
        self.handoff_code = None


@dataclass
class SubmissionResult:
    outcome: SubmissionOutcome
    message: Optional[str] = None
    bootstrap: Optional[SessionBootstrap] = None
    errors: dict = field(default_factory=dict)
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome is SubmissionOutcome.success

    @property
    def retryable(self) -> bool:
        return self.outcome in (SubmissionOutcome.timed_out, SubmissionOutcome.network_error)


class RegistrationSubmitter:
    def __init__(
        self,
        http_client: httpx.Client | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        navigate: Callable[[SessionBootstrap], None] | None = None,
    ):
        self.timeout = settings.SUBMIT_TIMEOUT_SECONDS if timeout is None else timeout
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=self.timeout)
        self.base_url = (settings.API_BASE_URL if base_url is None else base_url).rstrip("/")
        self.navigate = navigate

    def close(self) -> None:
        """Closes the HTTP client if this submitter created it."""
        if self._owns_client:
            self.http_client.close()

    def __enter__(self) -> "RegistrationSubmitter":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def check_preconditions(self, wizard: RegistrationWizard) -> Optional[tuple[str, Optional[WizardStep]]]:
        """Returns ``(message, step to return to)`` for the first failing precondition."""
        locale = wizard.locale
        if wizard.image is None:
            return message_for("image_missing", locale), None
        if wizard.role is Role.provider and not wizard.tags:
            return message_for("tags_missing", locale), WizardStep.tags
        errors = validate_personal_info(wizard.form.as_fields(), locale)
        if errors:
            return next(iter(errors.values())), WizardStep.personal_info
        if wizard.location is None:
            return message_for("location_missing", locale), WizardStep.location
        return None

    def build_multipart(self, wizard: RegistrationWizard) -> tuple[dict, dict]:
        data = dict(wizard.form.as_fields())
        if wizard.role is Role.provider:
            data["tags"] = json.dumps(sorted(wizard.tags), ensure_ascii=False)
        data["location"] = json.dumps(wizard.location.model_dump())
        data["serviceArea"] = json.dumps([point.model_dump() for point in wizard.ensure_service_area()])
        data["requestId"] = wizard.submission_id

        image = wizard.image
        files = {
            "profileImage": (
                image.filename,
                image.content,
                image.content_type or "application/octet-stream",
            )
        }
        return data, files

    def submit(self, wizard: RegistrationWizard) -> SubmissionResult:
        if not wizard.is_terminal:
            raise RuntimeError("Submission is only available from the last wizard step")

        failed = self.check_preconditions(wizard)
        if failed:
            message, step = failed
            wizard.notify(message)
            if step is not None and step in wizard.steps:
                wizard.go_to(step)
            return SubmissionResult(SubmissionOutcome.blocked, message=message)

        data, files = self.build_multipart(wizard)
        url = f"{self.base_url}{ENDPOINTS[wizard.role]}"
        wizard.notify(client_message("sending", wizard.locale))

        try:
            response = self.http_client.post(url, data=data, files=files, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            logger.error("Registration submit timed out after %ss: %s", self.timeout, exc)
            return self._transport_failure(wizard, SubmissionOutcome.timed_out, "timed_out")
        except httpx.TransportError as exc:
            logger.error("Registration submit network error: %s", exc)
            return self._transport_failure(wizard, SubmissionOutcome.network_error, "network_error")

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.error("Uninterpretable registration response status=%s", response.status_code)
            return self._transport_failure(wizard, SubmissionOutcome.network_error, "unexpected_response")

        if payload.get("ok") and payload.get("uid") and payload.get("customToken"):
            return self._succeed(wizard, payload, response.status_code)

        if payload.get("ok"):
            logger.error("Registration response missing uid or token")
            return self._transport_failure(wizard, SubmissionOutcome.network_error, "unexpected_response")

        errors = payload.get("errors") if isinstance(payload.get("errors"), dict) else {}
        message = (
            payload.get("message")
            or next(iter(errors.values()), None)
            or client_message("submit_failed", wizard.locale, status=response.status_code)
        )
        wizard.notify(message)
        return SubmissionResult(
            SubmissionOutcome.rejected,
            message=message,
            errors=errors,
            status_code=response.status_code,
        )

    def _succeed(self, wizard: RegistrationWizard, payload: dict, status_code: int) -> SubmissionResult:
        bootstrap = SessionBootstrap(
            uid=payload["uid"],
            custom_token=payload["customToken"],
            handoff_code=payload.get("handoffCode"),
        )
        logger.info("Account created uid=%s", bootstrap.uid)
        if self.navigate:
            self.navigate(bootstrap)
        wizard.notifications.dismiss()
        wizard.reset()
        return SubmissionResult(SubmissionOutcome.success, bootstrap=bootstrap, status_code=status_code)

    def _transport_failure(self, wizard: RegistrationWizard, outcome: SubmissionOutcome, key: str) -> SubmissionResult:
        message = client_message(key, wizard.locale)
        wizard.notify(message)
        return SubmissionResult(outcome, message=message)
