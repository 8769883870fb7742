"""Field validation run at the API boundary before any workflow executes."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .contracts import DeliveryAddressInput, SignUpInput

_IDENTIFICATION_PATTERN = re.compile(r"^[A-Za-z0-9]{5,20}$")
_PHONE_PATTERN = re.compile(r"^[0-9]{9,11}$")
_ZIP_CODE_PATTERN = re.compile(r"^[0-9]{5}$")


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str


def _require(errors: list[FieldError], field: str, value: str | None, label: str) -> bool:
    if value is None or not value.strip():
        errors.append(FieldError(field, f"{label} is a required field."))
        return False
    return True


def _max_length(errors: list[FieldError], field: str, value: str, label: str, limit: int) -> None:
    if len(value) > limit:
        errors.append(FieldError(field, f"{label} must be at most {limit} characters."))


def validate_sign_up(payload: SignUpInput) -> list[FieldError]:
    """Return every field problem of a sign-up form; an empty list means valid.

    The birth date is only checked for presence here. Its format is enforced by
    the registration workflow, which reports it as a ``DateFormatError``.
    """
    errors: list[FieldError] = []

    if _require(errors, "identification", payload.identification, "ID"):
        if not _IDENTIFICATION_PATTERN.match(payload.identification):
            errors.append(
                FieldError("identification", "ID must be 5 to 20 letters or digits.")
            )
    if _require(errors, "password", payload.password, "Password"):
        # bcrypt only reads the first 72 bytes
        if len(payload.password.encode("utf-8")) > 72:
            errors.append(FieldError("password", "Password must be at most 72 bytes."))
    _require(errors, "confirm_password", payload.confirm_password, "Password confirmation")
    if _require(errors, "name", payload.name, "Name"):
        _max_length(errors, "name", payload.name, "Name", 50)
    _require(errors, "birth_date", payload.birth_date, "Birth date")
    if _require(errors, "phone_number", payload.phone_number, "Phone number"):
        if not _PHONE_PATTERN.match(payload.phone_number):
            errors.append(FieldError("phone_number", "Phone number must be 9 to 11 digits."))
    return errors


def validate_delivery_address(payload: DeliveryAddressInput) -> list[FieldError]:
    errors: list[FieldError] = []
    if _require(errors, "recipient_name", payload.recipient_name, "Recipient name"):
        _max_length(errors, "recipient_name", payload.recipient_name, "Recipient name", 50)
    if _require(errors, "phone_number", payload.phone_number, "Phone number"):
        if not _PHONE_PATTERN.match(payload.phone_number):
            errors.append(FieldError("phone_number", "Phone number must be 9 to 11 digits."))
    if _require(errors, "zip_code", payload.zip_code, "Zip code"):
        if not _ZIP_CODE_PATTERN.match(payload.zip_code):
            errors.append(FieldError("zip_code", "Zip code must be 5 digits."))
    if _require(errors, "address", payload.address, "Address"):
        _max_length(errors, "address", payload.address, "Address", 200)
    # detail address is optional (e.g. detached houses)
    _max_length(errors, "detail_address", payload.detail_address or "", "Detail address", 200)
    return errors
