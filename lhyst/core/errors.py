"""
Error taxonomy shared by the handlers.
Every error knows the HTTP status it is rendered with; main registers a
single exception handler for LhystError.
"""
from typing import Optional


class LhystError(Exception):
    status_code = 500

    def __init__(self, message: str, note: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.note = note
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.message, "type": type(self).__name__}
        if self.note:
            body["note"] = self.note
        return body


class ValidationError(LhystError):
    """Missing or malformed request field; the client must fix its input."""
    status_code = 400


class ConfigurationError(LhystError):
    """Required credentials are absent from the deployment."""
    status_code = 500


class DuplicateAccountError(LhystError):
    status_code = 400


class InvalidCodeError(LhystError):
    """No unused code matches; covers both never issued and already redeemed."""
    status_code = 400


class ExpiredCodeError(LhystError):
    status_code = 400


class StorageError(LhystError):
    status_code = 500


class UpstreamError(LhystError):
    status_code = 500


class AccountExistsError(LhystError):
    """Identity store refused to create an account because the email is taken."""
    status_code = 400
