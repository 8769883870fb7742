"""Failures raised by the account workflows.

Each error carries the HTTP status the API layer answers with, so the router
maps the whole taxonomy through a single helper.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for account workflow failures."""

    status_code: int = 400
    default_message: str = "account request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class DuplicateIdentityError(AccountError):
    default_message = "The ID already exists."


class PasswordMismatchError(AccountError):
    default_message = "Passwords do not match."


class DateFormatError(AccountError, ValueError):
    default_message = "Invalid birth date format. Expected YYYY-MM-DD."


class BadCredentialsError(AccountError):
    status_code = 401
    default_message = "Invalid identification or password."


class InvalidTokenError(AccountError):
    default_message = "Invalid refresh token."


class NotFoundError(AccountError):
    status_code = 404
    default_message = "not found"
