from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from account_service.api import routes
from account_service.domain.account import (
    Account,
    AccountSummary,
    Cart,
    DeliveryAddress,
    WishList,
)
from account_service.domain.contracts import DeliveryAddressInput, NewAccount, SignUpInput
from account_service.domain.delivery import DeliveryAddressService
from account_service.domain.errors import DuplicateIdentityError
from account_service.domain.service import AccountService
from account_service.security.login_throttle import FailedLoginThrottle
from account_service.security.passwords import BcryptPasswordHasher
from account_service.security.tokens import JwtTokenIssuer


class FakeRepository:
    """In-memory credential store mimicking the Postgres-backed behaviors."""

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self.carts: dict[int, Cart] = {}
        self.wish_lists: dict[int, WishList] = {}
        self._addresses: dict[int, DeliveryAddress] = {}
        self._ids = itertools.count(1)
        self._address_ids = itertools.count(1)
        # simulates a concurrent insert winning the race after the duplicate precheck
        self.lose_next_insert_race = False

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    def find_by_identification(self, identification: str) -> Account | None:
        for account in self._accounts.values():
            if account.identification == identification:
                return replace(account)
        return None

    def find_by_id(self, account_id: int) -> Account | None:
        account = self._accounts.get(account_id)
        return replace(account) if account else None

    def create_account(self, new_account: NewAccount, *, with_cart_and_wish_list: bool) -> Account:
        if self.lose_next_insert_race:
            self.lose_next_insert_race = False
            raise DuplicateIdentityError()
        if any(a.identification == new_account.identification for a in self._accounts.values()):
            raise DuplicateIdentityError()

        now = datetime.now(timezone.utc)
        account_id = next(self._ids)
        account = Account(
            account_id=account_id,
            identification=new_account.identification,
            password_hash=new_account.password_hash,
            role=new_account.role,
            tier=new_account.tier,
            point=new_account.point,
            amount_to_next_tier=new_account.amount_to_next_tier,
            registration_date=new_account.registration_date,
            created_at=now,
            updated_at=now,
            name=new_account.name,
            birth_date=new_account.birth_date,
            phone_number=new_account.phone_number,
        )
        if with_cart_and_wish_list:
            cart = Cart(cart_id=account_id, account_id=account_id, estimated_total_price=0)
            wish_list = WishList(wish_list_id=account_id, account_id=account_id)
            self.carts[account_id] = cart
            self.wish_lists[account_id] = wish_list
            account.cart_id = cart.cart_id
            account.wish_list_id = wish_list.wish_list_id
        self._accounts[account_id] = account
        return replace(account)

    def update_refresh_token(self, account_id: int, token_hash: str | None) -> None:
        account = self._accounts[account_id]
        account.refresh_token = token_hash
        account.updated_at = datetime.now(timezone.utc)

    def get_cart(self, account_id: int) -> Cart | None:
        return self.carts.get(account_id)

    def get_wish_list(self, account_id: int) -> WishList | None:
        return self.wish_lists.get(account_id)

    def list_accounts(self, *, limit: int, offset: int) -> tuple[list[AccountSummary], int]:
        ordered = sorted(self._accounts.values(), key=lambda a: a.account_id)
        items = [
            AccountSummary(
                account_id=a.account_id,
                identification=a.identification,
                name=a.name,
                role=a.role,
                tier=a.tier,
                registration_date=a.registration_date,
            )
            for a in ordered[offset : offset + limit]
        ]
        return items, len(ordered)

    def add_delivery_address(self, account_id: int, payload: DeliveryAddressInput) -> DeliveryAddress:
        address = DeliveryAddress(
            address_id=next(self._address_ids),
            account_id=account_id,
            recipient_name=payload.recipient_name,
            phone_number=payload.phone_number,
            zip_code=payload.zip_code,
            address=payload.address,
            detail_address=payload.detail_address,
            created_at=datetime.now(timezone.utc),
        )
        self._addresses[address.address_id] = address
        return address

    def list_delivery_addresses(self, account_id: int) -> list[DeliveryAddress]:
        return [a for a in self._addresses.values() if a.account_id == account_id]

    def delete_delivery_address(self, account_id: int, address_id: int) -> bool:
        address = self._addresses.get(address_id)
        if address is None or address.account_id != account_id:
            return False
        del self._addresses[address_id]
        return True

    def delete_all(self) -> None:
        self._accounts.clear()
        self.carts.clear()
        self.wish_lists.clear()
        self._addresses.clear()

    def remove_account(self, account_id: int) -> None:
        self._accounts.pop(account_id, None)


def _build_sign_up_form(identification: str = "abcd123", **overrides: str) -> SignUpInput:
    values = {
        "identification": identification,
        "password": "p1",
        "confirm_password": "p1",
        "name": "Name",
        "birth_date": "1999-12-30",
        "phone_number": "01012345678",
    }
    values.update(overrides)
    return SignUpInput(**values)


@pytest.fixture
def sign_up_form():
    """Factory for sign-up forms that pass field validation; override any field by keyword."""
    return _build_sign_up_form


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def token_issuer() -> JwtTokenIssuer:
    return JwtTokenIssuer(
        secret="test-secret",
        issuer="test.accounts",
        access_ttl_seconds=300,
        refresh_ttl_seconds=3600,
    )


@pytest.fixture
def service(repository: FakeRepository, token_issuer: JwtTokenIssuer) -> AccountService:
    return AccountService(repository, BcryptPasswordHasher(rounds=4), token_issuer)


@pytest.fixture
def api_client(repository, token_issuer, service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    routes.install_error_handlers(app)
    app.include_router(routes.router)
    app.state.account_service = service
    app.state.delivery_address_service = DeliveryAddressService(repository)
    app.state.token_issuer = token_issuer

    original_throttle = routes.login_throttle
    routes.login_throttle = FailedLoginThrottle(max_failures=3, window_seconds=60)

    with TestClient(app) as client:
        yield client

    routes.login_throttle = original_throttle
