"""Account service orchestrating registration, authentication and token issuance."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

from .account import DEFAULT_AMOUNT_TO_NEXT_TIER, Account, AccountSummary, Profile, Role, Tier
from .contracts import CredentialStore, NewAccount, PasswordHasher, SignUpInput, TokenIssuer
from .errors import (
    BadCredentialsError,
    DateFormatError,
    DuplicateIdentityError,
    InvalidTokenError,
    NotFoundError,
    PasswordMismatchError,
)
from .. import metrics
from ..security.tokens import REFRESH_TOKEN_TYPE, hash_refresh_token

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_BIRTH_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


@dataclass(slots=True)
class LoginResult:
    """The authenticated account together with the token pair issued for it."""

    account: Account
    access_token: str
    access_expires_in: int
    refresh_token: str
    refresh_expires_in: int


@dataclass(slots=True)
class AccessTokenBundle:
    access_token: str
    access_expires_in: int


@dataclass(slots=True)
class UserPage:
    items: list[AccountSummary]
    page: int
    size: int
    total: int


class AccountService:
    """Registration, login, token refresh and profile workflows."""

    def __init__(
        self,
        repository: CredentialStore,
        password_hasher: PasswordHasher,
        token_issuer: TokenIssuer,
    ) -> None:
        """Store the collaborators used to persist accounts and mint tokens."""
        self._repository = repository
        self._hasher = password_hasher
        self._tokens = token_issuer

    def sign_up(self, payload: SignUpInput) -> Account:
        """Register a member together with an empty cart and wish list."""
        return self._register(payload, role=Role.USER, with_cart_and_wish_list=True)

    def sign_up_admin(self, payload: SignUpInput) -> Account:
        """Register an administrator; administrators do not shop, so no cart or wish list."""
        return self._register(payload, role=Role.ADMIN, with_cart_and_wish_list=False)

    def check_duplicate_identification(self, identification: str) -> None:
        """Raise ``DuplicateIdentityError`` when ``identification`` is already taken."""
        if self._repository.find_by_identification(identification) is not None:
            raise DuplicateIdentityError()

    def ensure_super_admin(self, identification: str, password: str) -> bool:
        """Create the bootstrap super administrator unless it already exists.

        Returns ``True`` when an account was created.
        """
        if self._repository.find_by_identification(identification) is not None:
            return False
        new_account = NewAccount(
            identification=identification,
            password_hash=self._hasher.encode(password),
            role=Role.SUPER_ADMIN,
            tier=Tier.lowest(),
            point=0,
            amount_to_next_tier=0,
            registration_date=date.today(),
        )
        try:
            self._repository.create_account(new_account, with_cart_and_wish_list=False)
        except DuplicateIdentityError:
            # another replica seeded it first
            return False
        logger.info("super admin created identification=%s", identification)
        return True

    def login(self, identification: str, password: str) -> LoginResult:
        """Verify credentials and issue a fresh access/refresh token pair.

        The refresh token digest stored on the account is overwritten, so only the
        most recently issued refresh token remains exchangeable.

        Raises
        ------
        BadCredentialsError
            For an empty field, an unknown identification or a wrong password alike.
        """
        if not identification or not password:
            raise BadCredentialsError()
        account = self._repository.find_by_identification(identification)
        if account is None or not self._hasher.matches(password, account.password_hash):
            raise BadCredentialsError()

        refresh_token = self._tokens.generate_refresh_token(account)
        token_hash = hash_refresh_token(refresh_token)
        self._repository.update_refresh_token(account.account_id, token_hash)
        account.refresh_token = token_hash

        access_token = self._tokens.generate_access_token(account)
        logger.info("login succeeded account_id=%s", account.account_id)
        return LoginResult(
            account=account,
            access_token=access_token,
            access_expires_in=self._tokens.access_ttl_seconds,
            refresh_token=refresh_token,
            refresh_expires_in=self._tokens.refresh_ttl_seconds,
        )

    def refresh_access_token(self, refresh_token: str) -> AccessTokenBundle:
        """Exchange the account's current refresh token for a new access token.

        Raises
        ------
        InvalidTokenError
            When the token is malformed, expired, not a refresh token, or has been
            superseded by a later login.
        NotFoundError
            When the account named by the token no longer exists.
        """
        if not refresh_token or not self._tokens.validate_token(refresh_token):
            raise InvalidTokenError()
        claims = self._tokens.decode_token(refresh_token)
        if claims.get("type") != REFRESH_TOKEN_TYPE:
            raise InvalidTokenError()

        account = self._repository.find_by_identification(claims["sub"])
        if account is None:
            raise NotFoundError(f"User not found with identification: {claims['sub']}")
        if account.refresh_token != hash_refresh_token(refresh_token):
            raise InvalidTokenError()

        return AccessTokenBundle(
            access_token=self._tokens.generate_access_token(account),
            access_expires_in=self._tokens.access_ttl_seconds,
        )

    def get_profile(self, account_id: int) -> Profile:
        """Return the account with every delivery address registered to it."""
        account = self._repository.find_by_id(account_id)
        if account is None:
            raise NotFoundError(f"User not found with id: {account_id}")
        addresses = self._repository.list_delivery_addresses(account_id)
        return Profile(account=account, delivery_addresses=addresses)

    def list_users(self, page: int = 0, size: int = 20) -> UserPage:
        page = max(0, page)
        size = max(1, min(size, MAX_PAGE_SIZE))
        items, total = self._repository.list_accounts(limit=size, offset=page * size)
        return UserPage(items=items, page=page, size=size, total=total)

    def _register(self, payload: SignUpInput, *, role: Role, with_cart_and_wish_list: bool) -> Account:
        if self._repository.find_by_identification(payload.identification) is not None:
            raise DuplicateIdentityError()
        if payload.password != payload.confirm_password:
            raise PasswordMismatchError()
        birth_date = _parse_birth_date(payload.birth_date)

        new_account = NewAccount(
            identification=payload.identification,
            password_hash=self._hasher.encode(payload.password),
            role=role,
            tier=Tier.lowest(),
            point=0,
            amount_to_next_tier=DEFAULT_AMOUNT_TO_NEXT_TIER,
            registration_date=date.today(),
            name=payload.name,
            birth_date=birth_date,
            phone_number=payload.phone_number,
        )
        account = self._repository.create_account(
            new_account, with_cart_and_wish_list=with_cart_and_wish_list
        )
        metrics.SIGNUPS.labels(role=role.value).inc()
        logger.info("account registered account_id=%s role=%s", account.account_id, role.value)
        return account


def _parse_birth_date(value: str) -> date:
    try:
        if not _BIRTH_DATE_PATTERN.fullmatch(value):
            raise ValueError(f"birth date must be YYYY-MM-DD: {value!r}")
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise DateFormatError() from exc
