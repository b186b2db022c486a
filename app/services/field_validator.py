"""
Shared validation rules for registration submissions.

One rule table keyed by field name is consumed by the wizard step gates,
the client submission preconditions and the provisioning endpoint, so the
three never drift apart. Rules return a message key; the key is resolved
through a per-locale catalog so the server answers in English while the
client shows Romanian text.
"""
from __future__ import annotations

import json
import math
import re
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from app.config import settings
from app.schemas.registration import GeoPoint

_EMAIL_REGEX = re.compile(r"^\S+@\S+\.\S+$")
_NON_DIGIT_REGEX = re.compile(r"\D")

PHONE_DIGITS = 9
MIN_AGE = 18
MIN_PASSWORD_LENGTH = 6
MIN_SERVICE_AREA_POINTS = 3

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".heic", ".heif"}
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/heic", "image/heif"}
DEFAULT_IMAGE_EXTENSION = ".jpg"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "full_name_missing": "Missing fullName",
        "email_invalid": "Invalid email",
        "age_invalid": "Must be 18+",
        "phone_missing": "Missing phone",
        "phone_format": "Phone must be 9 digits without +40",
        "password_short": "Password must be at least 6 characters",
        "location_missing": "Missing location",
        "location_invalid": "Invalid location (expected { lat:number, lng:number })",
        "service_area_missing": "Missing serviceArea",
        "service_area_invalid": (
            "Invalid serviceArea (expected array of { lat:number, lng:number }, min 3 points)"
        ),
        "image_missing": "Missing profileImage",
        "image_empty": "Empty profileImage upload",
        "image_too_large": "profileImage exceeds the 5 MB limit",
        "image_type": "Unsupported profileImage type",
        "tags_missing": "Select at least one tag",
    },
    "ro": {
        "full_name_missing": "Completați numele.",
        "email_invalid": "Adresă de e-mail invalidă.",
        "age_invalid": "Trebuie să ai cel puțin 18 ani.",
        "phone_missing": "Introduceți un număr de telefon.",
        "phone_format": "Numărul trebuie să conțină 9 cifre (fără prefix).",
        "password_short": "Parola trebuie să aibă cel puțin 6 caractere.",
        "location_missing": "Alege o zonă pe hartă.",
        "location_invalid": "Locația selectată nu este validă.",
        "service_area_missing": "Alege o zonă pe hartă.",
        "service_area_invalid": "Zona selectată nu este validă.",
        "image_missing": "Te rugăm să încarci o poză.",
        "image_empty": "Fișier invalid. Selectează o imagine.",
        "image_too_large": "Imaginea depășește limita de 5 MB.",
        "image_type": "Fișier invalid. Selectează o imagine.",
        "tags_missing": "Selectează cel puțin un serviciu.",
    },
}


def message_for(key: str, locale: str | None = None) -> str:
    catalog = MESSAGES.get(locale or settings.VALIDATION_LOCALE) or MESSAGES["en"]
    return catalog.get(key, MESSAGES["en"][key])


def phone_digits(value: Any) -> str:
    return _NON_DIGIT_REGEX.sub("", str(value or ""))


def normalize_phone(value: Any, country_code: str | None = None) -> str:
    return f"{country_code or settings.PHONE_COUNTRY_CODE}{phone_digits(value)[:PHONE_DIGITS]}"


def parse_age(value: Any) -> Optional[int]:
    """Returns the age as an int when it is a whole, finite number; otherwise None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def _load_json(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return None
    return raw


def parse_location(raw: Any) -> Optional[GeoPoint]:
    """Accepts a ``{lat, lng}`` mapping or its JSON encoding."""
    data = _load_json(raw)
    if isinstance(data, GeoPoint):
        return data
    if not isinstance(data, Mapping):
        return None
    try:
        return GeoPoint.model_validate({"lat": data.get("lat"), "lng": data.get("lng")})
    except ValidationError:
        return None


def parse_service_area(raw: Any) -> Optional[list[GeoPoint]]:
    data = _load_json(raw)
    if not isinstance(data, (list, tuple)):
        return None
    points = []
    for item in data:
        point = parse_location(item)
        if point is None:
            return None
        points.append(point)
    return points


def parse_tags(raw: Any) -> list[str]:
    """
    Accepts a JSON array, falling back to a comma-split of a plain string.
    Returns the unique, non-blank tags in submission order.
    """
    if raw is None:
        return []
    values: Any = raw
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except ValueError:
            values = raw
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple, set)):
        return []

    tags: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        tag = value.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _check_full_name(value: Any) -> Optional[str]:
    if not str(value or "").strip():
        return "full_name_missing"
    return None


def _check_email(value: Any) -> Optional[str]:
    email = str(value or "").strip()
    if not email or not _EMAIL_REGEX.match(email):
        return "email_invalid"
    return None


def _check_age(value: Any) -> Optional[str]:
    age = parse_age(value)
    if age is None or age < MIN_AGE:
        return "age_invalid"
    return None


def _check_phone(value: Any) -> Optional[str]:
    digits = phone_digits(value)
    if not digits:
        return "phone_missing"
    if len(digits) != PHONE_DIGITS:
        return "phone_format"
    return None


def _check_password(value: Any) -> Optional[str]:
    if not value or len(str(value)) < MIN_PASSWORD_LENGTH:
        return "password_short"
    return None


def _check_location(value: Any) -> Optional[str]:
    if value is None or value == "":
        return "location_missing"
    if parse_location(value) is None:
        return "location_invalid"
    return None


def _check_service_area(value: Any) -> Optional[str]:
    if value is None or value == "":
        return "service_area_missing"
    points = parse_service_area(value)
    if points is None or len(points) < MIN_SERVICE_AREA_POINTS:
        return "service_area_invalid"
    return None


Rule = Callable[[Any], Optional[str]]

PERSONAL_INFO_RULES: dict[str, Rule] = {
    "fullName": _check_full_name,
    "email": _check_email,
    "age": _check_age,
    "password": _check_password,
    "phone": _check_phone,
}

GEO_RULES: dict[str, Rule] = {
    "location": _check_location,
    "serviceArea": _check_service_area,
}

REGISTRATION_RULES: dict[str, Rule] = {**PERSONAL_INFO_RULES, **GEO_RULES}


def validate_fields(
    fields: Mapping[str, Any],
    rules: Mapping[str, Rule] = REGISTRATION_RULES,
    locale: str | None = None,
) -> dict[str, str]:
    """Runs ``rules`` against ``fields``; an empty mapping means every rule passed."""
    errors: dict[str, str] = {}
    for name, rule in rules.items():
        key = rule(fields.get(name))
        if key:
            errors[name] = message_for(key, locale)
    return errors


def validate_personal_info(fields: Mapping[str, Any], locale: str | None = None) -> dict[str, str]:
    return validate_fields(fields, PERSONAL_INFO_RULES, locale)


def validate_registration(fields: Mapping[str, Any], locale: str | None = None) -> dict[str, str]:
    return validate_fields(fields, REGISTRATION_RULES, locale)


def image_extension(filename: str | None) -> str:
    return Path(filename or "").suffix.lower() or DEFAULT_IMAGE_EXTENSION


def is_acceptable_image(filename: str | None, content_type: str | None) -> bool:
    if content_type and content_type.lower() in ALLOWED_IMAGE_TYPES:
        return True
    return Path(filename or "").suffix.lower() in ALLOWED_IMAGE_EXTENSIONS


def check_profile_image(
    filename: str | None,
    content_type: str | None,
    size: int | None,
    locale: str | None = None,
) -> Optional[str]:
    """Returns an error message for an unacceptable upload, or None."""
    if size is None:
        return message_for("image_missing", locale)
    if size == 0:
        return message_for("image_empty", locale)
    if size > settings.MAX_PROFILE_IMAGE_BYTES:
        return message_for("image_too_large", locale)
    if not is_acceptable_image(filename, content_type):
        return message_for("image_type", locale)
    return None
