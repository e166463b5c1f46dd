"""Domain errors raised by the services layer.

Routes let these propagate; the handlers registered in ``vibeshare.main``
turn them into JSON responses. Client-facing errors keep their message,
infrastructure errors are logged and answered with an opaque 500.
"""

from __future__ import annotations


class VibeShareError(Exception):
    status_code: int = 500
    public_detail: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_detail)

    @property
    def detail(self) -> str:
        if self.status_code >= 500:
            return self.public_detail
        return str(self)


class AuthorizationError(VibeShareError):
    status_code = 401
    public_detail = "Unauthorized"


class NotFoundError(VibeShareError):
    status_code = 404
    public_detail = "Not found"


class ConfigurationError(VibeShareError):
    pass


class InvalidPreferenceError(ConfigurationError):
    def __init__(self, preference: str) -> None:
        super().__init__(f"Invalid service preference: {preference!r}")
        self.preference = preference


class TransportError(VibeShareError):
    def __init__(self, status: int | None, status_text: str) -> None:
        super().__init__(f"Error {status if status is not None else 'n/a'}: {status_text}")
        self.status = status
        self.status_text = status_text


class MediaStoreError(VibeShareError):
    pass


class UploadError(MediaStoreError):
    pass
