"""
Exceptions raised by the registration services.

Every one of them ends up as an HTTP 500 at the route boundary; the class only
decides the message that is logged and returned to the client.
"""

from __future__ import annotations


class RegistrationError(Exception):
    """Base class for failures surfaced to API clients."""

    default_message = "Registration request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class MalformedPayload(RegistrationError):
    default_message = "Malformed registration payload"


class MissingFile(RegistrationError):
    default_message = "No file uploaded"


class MissingRegistrationId(RegistrationError):
    default_message = "No registration ID provided"


class RegistrationNotFound(RegistrationError):
    default_message = "Registration not found"


class InvalidFileType(RegistrationError):
    default_message = "Invalid file type. Only JPEG, JPG and PNG allowed."


class FileTooLarge(RegistrationError):
    default_message = "File too large"


class StorageFailure(RegistrationError):
    default_message = "Storage operation failed"
