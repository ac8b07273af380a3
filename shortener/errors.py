"""
Error taxonomy for the short link service.

Every public error carries the status code the HTTP layer answers with, so
callers can branch on the exception type or on ``status_code`` alone.
"""


class ShortenerError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidUrlError(ShortenerError):
    status_code = 400
    message = "Invalid URL format"


class InvalidValidityError(ShortenerError):
    status_code = 400
    message = "Validity must be a positive number of minutes"


class InvalidShortcodeFormatError(ShortenerError):
    status_code = 400
    message = "Custom shortcode must be 4-12 characters and contain only alphanumeric characters"


class ShortcodeConflictError(ShortenerError):
    status_code = 409
    message = "Custom shortcode already exists"


class ExhaustedError(ShortenerError):
    status_code = 500
    message = "Failed to generate unique shortcode"


class StoreFaultError(ShortenerError):
    status_code = 500
    message = "Link store unavailable"


class LinkUnavailableError(ShortenerError):
    """Expected outcome of a lookup: the code cannot be served right now."""


class NotFoundError(LinkUnavailableError):
    status_code = 404
    message = "Short URL not found"


class ExpiredError(LinkUnavailableError):
    status_code = 410
    message = "Short URL has expired"


class DuplicateKeyError(Exception):
    """Raised by a store when an insert hits an existing short code."""


class VersionConflictError(Exception):
    """Raised by a store when a conditional update lost a race."""
