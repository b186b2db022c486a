from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    provider = "provider"
    requester = "requester"

    @property
    def collection(self) -> str:
        return f"{self.value}s"


class GeoPoint(BaseModel):
    # Strict: JSON numbers only, no numeric strings
    lat: float = Field(ge=-90, le=90, strict=True, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, strict=True, allow_inf_nan=False)

    model_config = {"frozen": True}

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("coordinate must be a number")
        return value


class RegistrationResponse(BaseModel):
    ok: bool = True
    uid: str
    customToken: str
    handoffCode: str
    replayed: bool = False


class CustomTokenRequest(BaseModel):
    uid: Any = None
    code: Any = None


class CustomTokenResponse(BaseModel):
    token: str
