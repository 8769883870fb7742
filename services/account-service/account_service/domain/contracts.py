"""Domain-level request contracts and collaborator interfaces shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from .account import Account, AccountSummary, Cart, DeliveryAddress, Role, Tier, WishList


@dataclass(slots=True)
class SignUpInput:
    """Raw sign-up form; the birth date is parsed by the registration workflow."""

    identification: str
    password: str
    confirm_password: str
    name: str
    birth_date: str
    phone_number: str


@dataclass(slots=True)
class NewAccount:
    """Fully resolved account values handed to the credential store."""

    identification: str
    password_hash: str
    role: Role
    tier: Tier
    point: int
    amount_to_next_tier: int
    registration_date: date
    name: str | None = None
    birth_date: date | None = None
    phone_number: str | None = None


@dataclass(slots=True)
class DeliveryAddressInput:
    recipient_name: str
    phone_number: str
    zip_code: str
    address: str
    detail_address: str


@dataclass(frozen=True, slots=True)
class AuthContext:
    """The authenticated caller of a single request, built from its access token."""

    account_id: int
    identification: str
    role: Role

    def can_access(self, account_id: int) -> bool:
        return self.account_id == account_id or self.role.is_admin


class CredentialStore(Protocol):
    def find_by_identification(self, identification: str) -> Account | None: ...

    def find_by_id(self, account_id: int) -> Account | None: ...

    def create_account(self, new_account: NewAccount, *, with_cart_and_wish_list: bool) -> Account: ...

    def update_refresh_token(self, account_id: int, token_hash: str | None) -> None: ...

    def get_cart(self, account_id: int) -> Cart | None: ...

    def get_wish_list(self, account_id: int) -> WishList | None: ...

    def list_accounts(self, *, limit: int, offset: int) -> tuple[list[AccountSummary], int]: ...

    def add_delivery_address(self, account_id: int, payload: DeliveryAddressInput) -> DeliveryAddress: ...

    def list_delivery_addresses(self, account_id: int) -> list[DeliveryAddress]: ...

    def delete_delivery_address(self, account_id: int, address_id: int) -> bool: ...

    def delete_all(self) -> None: ...


class PasswordHasher(Protocol):
    def encode(self, plaintext: str) -> str: ...

    def matches(self, plaintext: str, hashed: str) -> bool: ...


class TokenIssuer(Protocol):
    access_ttl_seconds: int
    refresh_ttl_seconds: int

    def generate_access_token(self, account: Account) -> str: ...

    def generate_refresh_token(self, account: Account) -> str: ...

    def validate_token(self, token: str) -> bool: ...

    def decode_token(self, token: str) -> dict[str, Any]: ...
