"""
Error types for BP Tracker.

Every failure the data store, the share-link service or the API reports is one
of these. Each carries the HTTP status it maps to, so the web layer can turn
any of them into a JSON response without a lookup table.
"""


class BPTrackerError(Exception):
    """Base class for all BP Tracker errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(BPTrackerError):
    """Missing or malformed input."""

    status_code = 400


class NotFoundError(BPTrackerError):
    """A referenced record does not exist."""

    status_code = 404


class TokenRejected(BPTrackerError):
    """
    A share token failed verification.

    The message is always the same, whatever the cause (bad signature,
    expired, wrong token type), so callers learn nothing about the token.
    """

    status_code = 401
    MESSAGE = "The link has expired or is not valid"

    def __init__(self):
        super().__init__(self.MESSAGE)

    def to_dict(self) -> dict:
        return {"error": self.message, "expired": True}


class InternalError(BPTrackerError):
    """Unexpected server-side failure. Details go to the log, not the caller."""

    status_code = 500
    PUBLIC_MESSAGE = "Internal server error"

    def to_dict(self) -> dict:
        return {"error": self.PUBLIC_MESSAGE}


class ConfigurationError(InternalError):
    """Required configuration (e.g. the signing secret) is missing."""
