from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @property
    def is_admin(self) -> bool:
        return self in (Role.ADMIN, Role.SUPER_ADMIN)


class Tier(str, Enum):
    """Loyalty levels, declared from lowest to highest."""

    IRON = "IRON"
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"

    @property
    def rank(self) -> int:
        return list(Tier).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def lowest(cls) -> "Tier":
        return cls.IRON


DEFAULT_AMOUNT_TO_NEXT_TIER = 50000


@dataclass(slots=True)
class Account:
    """Aggregate root for a shopping mall member or administrator."""

    account_id: int
    identification: str
    password_hash: str
    role: Role
    tier: Tier
    point: int
    amount_to_next_tier: int
    registration_date: date
    created_at: datetime
    updated_at: datetime
    name: str | None = None
    birth_date: date | None = None
    phone_number: str | None = None
    refresh_token: str | None = None
    cart_id: int | None = None
    wish_list_id: int | None = None


@dataclass(slots=True)
class Cart:
    cart_id: int
    account_id: int
    estimated_total_price: int = 0


@dataclass(slots=True)
class WishList:
    wish_list_id: int
    account_id: int


@dataclass(slots=True)
class DeliveryAddress:
    address_id: int
    account_id: int
    recipient_name: str
    phone_number: str
    zip_code: str
    address: str
    detail_address: str
    created_at: datetime


@dataclass(slots=True)
class AccountSummary:
    """Row projection used by the admin member listing."""

    account_id: int
    identification: str
    name: str | None
    role: Role
    tier: Tier
    registration_date: date


@dataclass(slots=True)
class Profile:
    """Account details together with every delivery address on file."""

    account: Account
    delivery_addresses: list[DeliveryAddress] = field(default_factory=list)
