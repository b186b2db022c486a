"""
Registration wizard for providers and requesters.

Providers walk PersonalInfo -> Tags -> Location -> Photo, requesters skip
Tags. Moves are linear: forward moves are gated, backward moves never
re-validate. State lives in memory only and is discarded on reset.
"""
from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from app.client.messages import client_message
from app.client.notifications import NotificationCenter
from app.config import settings
from app.schemas.registration import GeoPoint, Role
from app.services.field_validator import (
    PHONE_DIGITS,
    check_profile_image,
    message_for,
    phone_digits,
    validate_personal_info,
)
from app.services.geofence import compute_square_corners

logger = logging.getLogger(__name__)

POPULAR_TAGS = (
    "Grădinărit",
    "Îngrijire animale",
    "Curățenie",
    "Reparații",
    "Muncă fizică",
    "Asistență IT",
)


class WizardStep(str, Enum):
    personal_info = "personal_info"
    tags = "tags"
    location = "location"
    photo = "photo"


FLOWS: dict[Role, tuple[WizardStep, ...]] = {
    Role.provider: (WizardStep.personal_info, WizardStep.tags, WizardStep.location, WizardStep.photo),
    Role.requester: (WizardStep.personal_info, WizardStep.location, WizardStep.photo),
}


# Form attribute -> multipart field name
WIRE_NAMES = {
    "full_name": "fullName",
    "email": "email",
    "age": "age",
    "password": "password",
    "phone": "phone",
}
_ATTRIBUTE_NAMES = {wire: attribute for attribute, wire in WIRE_NAMES.items()}


@dataclass
class RegistrationForm:
    full_name: str = ""
    email: str = ""
    age: str = ""
    password: str = ""
    phone: str = ""

    @classmethod
    def sample(cls) -> "RegistrationForm":
        """Placeholder values shown when the wizard opens."""
        return cls(
            full_name="Andrei Frintu",
            email="example@gmail.com",
            age="18",
            password="andrei07",
            phone="123456789",
        )

    def update(self, name: str, value) -> None:
        """Sets a field by attribute or wire name, the way an input change event would."""
        attribute = _ATTRIBUTE_NAMES.get(name, name)
        if attribute not in WIRE_NAMES:
            raise KeyError(f"Unknown form field: {name}")
        text = "" if value is None else str(value)
        if attribute == "phone":
            # Keep only national digits, never more than 9
            text = phone_digits(text)[:PHONE_DIGITS]
        setattr(self, attribute, text)

    def as_fields(self) -> dict[str, str]:
        return {wire: getattr(self, attribute) for attribute, wire in WIRE_NAMES.items()}


@dataclass
class ProfileImage:
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: str | Path) -> "ProfileImage":
        file_path = Path(path)
        content_type, _ = mimetypes.guess_type(file_path.name)
        return cls(filename=file_path.name, content=file_path.read_bytes(), content_type=content_type)


class RegistrationWizard:
    def __init__(
        self,
        role: Role | str,
        notifications: NotificationCenter | None = None,
        form: RegistrationForm | None = None,
        locale: str | None = None,
        half_side_km: float | None = None,
    ):
        self.role = Role(role)
        self.steps = FLOWS[self.role]
        self.locale = locale or settings.CLIENT_LOCALE
        self.half_side_km = settings.SERVICE_AREA_HALF_SIDE_KM if half_side_km is None else half_side_km
        self.notifications = notifications or NotificationCenter()
        self.reset(form or RegistrationForm.sample())

    def reset(self, form: RegistrationForm | None = None) -> None:
        """Discards everything entered so far and returns to the first step."""
        self._index = 0
        self.form = form if form is not None else RegistrationForm()
        self.tags: set[str] = set()
        self.location: Optional[GeoPoint] = None
        self.service_area: list[GeoPoint] = []
        self.image: Optional[ProfileImage] = None
        # Idempotency key reused by every submission attempt of this wizard session
        self.submission_id = uuid.uuid4().hex

    @property
    def step(self) -> WizardStep:
        return self.steps[self._index]

    @property
    def is_terminal(self) -> bool:
        return self._index == len(self.steps) - 1

    def notify(self, message: str) -> None:
        self.notifications.show(message)

    def update_field(self, name: str, value) -> None:
        self.form.update(name, value)

    def personal_info_errors(self) -> dict[str, str]:
        return validate_personal_info(self.form.as_fields(), self.locale)

    def toggle_tag(self, tag: str) -> bool:
        """Adds or removes ``tag``; returns True when the tag is now selected."""
        if tag in self.tags:
            self.tags.discard(tag)
            return False
        self.tags.add(tag)
        return True

    @staticmethod
    def filter_tags(query: str, vocabulary=POPULAR_TAGS) -> list[str]:
        needle = (query or "").strip().lower()
        return [tag for tag in vocabulary if needle in tag.lower()]

    def pick_location(self, lat: float, lng: float) -> GeoPoint:
        center = GeoPoint(lat=lat, lng=lng)
        self.set_location(center)
        return center

    def set_location(self, center: GeoPoint, derive_area: bool = True) -> None:
        self.location = center
        # A moved center never keeps the old corners
        self.service_area = compute_square_corners(center, self.half_side_km) if derive_area else []

    def ensure_service_area(self) -> list[GeoPoint]:
        if self.location is not None and not self.service_area:
            self.service_area = compute_square_corners(self.location, self.half_side_km)
        return self.service_area

    def attach_image(self, image: ProfileImage) -> bool:
        error = check_profile_image(image.filename, image.content_type, len(image.content), self.locale)
        if error:
            self.notify(error)
            return False
        self.image = image
        return True

    def remove_image(self) -> None:
        self.image = None

    def next(self) -> bool:
        """Advances one step when the current step's gate passes."""
        if self.is_terminal:
            return False

        if self.step is WizardStep.personal_info:
            errors = self.personal_info_errors()
            if errors:
                self.notify(next(iter(errors.values())))
                return False
        elif self.step is WizardStep.tags:
            if not self.tags:
                self.notify(message_for("tags_missing", self.locale))
                return False
        elif self.step is WizardStep.location:
            if self.location is None:
                self.notify(client_message("location_required", self.locale))
                return False
            self.ensure_service_area()

        self.notifications.dismiss()
        self._index += 1
        logger.debug("%s wizard advanced to %s", self.role.value, self.step.value)
        return True

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        return True

    def go_to(self, step: WizardStep) -> None:
        """Jumps back to an earlier step; forward jumps are not allowed."""
        target = self.steps.index(step)
        if target > self._index:
            raise ValueError(f"Cannot skip forward to {step.value}")
        self._index = target
