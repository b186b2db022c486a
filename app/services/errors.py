from __future__ import annotations

from fastapi import status


class RegistrationError(Exception):
    """Base error for the provisioning pipeline, mapped to an ``ok:false`` body."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        errors: dict[str, str] | None = None,
        error: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}
        self.error = error
        if status_code is not None:
            self.status_code = status_code


class RegistrationValidationError(RegistrationError):
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateRequestError(RegistrationError):
    status_code = status.HTTP_409_CONFLICT


class IdentityProviderError(RegistrationError):
    """Raised when the identity provider refuses or fails an operation."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message, error=code)
        self.code = code


class ProfileStoreError(RegistrationError):
    pass


class ImageStoreError(RegistrationError):
    pass


class HandoffCodeError(RegistrationError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Invalid or expired handoff code", code: str = "handoff/invalid-code"):
        super().__init__(message, error=code)
        self.code = code
