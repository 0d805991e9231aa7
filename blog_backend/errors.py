"""
Error taxonomy shared by the services and the HTTP layer.

Each error carries the status code it is rendered with; the app installs a
single handler that turns any ``CmsError`` into ``{"message": ...}``.
"""

from __future__ import annotations


class CmsError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(CmsError):
    status_code = 400
    default_message = "Invalid credentials"


class Unauthorized(CmsError):
    status_code = 401
    default_message = "Unauthorized"


class LoginRequired(Unauthorized):
    """Raised for page-style requests; rendered as a redirect to the login page."""


class NotFound(CmsError):
    status_code = 404
    default_message = "Not found"


class Conflict(CmsError):
    status_code = 409
    default_message = "Resource already exists"


class ValidationError(CmsError):
    status_code = 400
    default_message = "Invalid input"


class UpstreamAssetError(CmsError):
    status_code = 502
    default_message = "Asset store request failed"


class InternalError(CmsError):
    status_code = 500
