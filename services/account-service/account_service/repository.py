"""Database repository for accounts, carts, wish lists and delivery addresses."""

from __future__ import annotations

from datetime import datetime, timezone

from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import (
    Account,
    AccountSummary,
    Cart,
    DeliveryAddress,
    Role,
    Tier,
    WishList,
)
from .domain.contracts import DeliveryAddressInput, NewAccount
from .domain.errors import DuplicateIdentityError

_ACCOUNT_COLUMNS = """
    a.account_id, a.identification, a.password_hash, a.role, a.tier, a.point,
    a.amount_to_next_tier, a.registration_date, a.created_at, a.updated_at,
    a.name, a.birth_date, a.phone_number, a.refresh_token, c.cart_id, w.wish_list_id
"""

_ACCOUNT_SELECT = f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts a
    LEFT JOIN carts c ON c.account_id = a.account_id
    LEFT JOIN wish_lists w ON w.account_id = a.account_id
"""

_ADDRESS_COLUMNS = """
    address_id, account_id, recipient_name, phone_number, zip_code, address,
    detail_address, created_at
"""


class AccountRepository:
    """Postgres-backed credential store.

    Every write runs inside ``conn.transaction()`` so it either commits as a
    whole or rolls back when any statement raises.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def find_by_identification(self, identification: str) -> Account | None:
        """Fetch the account registered under ``identification`` or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"{_ACCOUNT_SELECT} WHERE a.identification = %s", (identification,))
                row = cur.fetchone()
        return self._map_account(row) if row else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Fetch an account by its primary key or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"{_ACCOUNT_SELECT} WHERE a.account_id = %s", (account_id,))
                row = cur.fetchone()
        return self._map_account(row) if row else None

    def create_account(self, new_account: NewAccount, *, with_cart_and_wish_list: bool) -> Account:
        """Insert an account, plus its empty cart and wish list when requested, atomically.

        Raises
        ------
        DuplicateIdentityError
            When the identification unique constraint rejects the insert.
        """
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.transaction():
                    with conn.cursor(row_factory=tuple_row) as cur:
                        cur.execute(
                            """
                            INSERT INTO accounts (
                                identification, password_hash, name, birth_date, phone_number,
                                role, tier, point, amount_to_next_tier, registration_date,
                                created_at, updated_at
                            )
                            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                            RETURNING account_id
                            """,
                            (
                                new_account.identification,
                                new_account.password_hash,
                                new_account.name,
                                new_account.birth_date,
                                new_account.phone_number,
                                new_account.role.value,
                                new_account.tier.value,
                                new_account.point,
                                new_account.amount_to_next_tier,
                                new_account.registration_date,
                                now,
                                now,
                            ),
                        )
                        (account_id,) = cur.fetchone()

                        if with_cart_and_wish_list:
                            cur.execute(
                                "INSERT INTO carts (account_id, estimated_total_price) VALUES (%s, 0)",
                                (account_id,),
                            )
                            cur.execute(
                                "INSERT INTO wish_lists (account_id) VALUES (%s)",
                                (account_id,),
                            )

                        cur.execute(f"{_ACCOUNT_SELECT} WHERE a.account_id = %s", (account_id,))
                        row = cur.fetchone()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateIdentityError() from exc
        return self._map_account(row)

    def update_refresh_token(self, account_id: int, token_hash: str | None) -> None:
        """Overwrite the refresh token digest stored for the account."""
        with self._pool.connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE accounts
                        SET refresh_token = %s, updated_at = NOW()
                        WHERE account_id = %s
                        """,
                        (token_hash, account_id),
                    )

    def get_cart(self, account_id: int) -> Cart | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    "SELECT cart_id, account_id, estimated_total_price FROM carts WHERE account_id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
        return Cart(cart_id=row[0], account_id=row[1], estimated_total_price=row[2]) if row else None

    def get_wish_list(self, account_id: int) -> WishList | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    "SELECT wish_list_id, account_id FROM wish_lists WHERE account_id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
        return WishList(wish_list_id=row[0], account_id=row[1]) if row else None

    def list_accounts(self, *, limit: int, offset: int) -> tuple[list[AccountSummary], int]:
        """Return one page of account summaries ordered by id, plus the total count."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT COUNT(*) FROM accounts")
                (total,) = cur.fetchone()
                cur.execute(
                    """
                    SELECT account_id, identification, name, role, tier, registration_date
                    FROM accounts
                    ORDER BY account_id
                    LIMIT %s OFFSET %s
                    """,
                    (limit, offset),
                )
                items = [
                    AccountSummary(
                        account_id=row[0],
                        identification=row[1],
                        name=row[2],
                        role=Role(row[3]),
                        tier=Tier(row[4]),
                        registration_date=row[5],
                    )
                    for row in cur.fetchall()
                ]
        return items, total

    def add_delivery_address(self, account_id: int, payload: DeliveryAddressInput) -> DeliveryAddress:
        with self._pool.connection() as conn:
            with conn.transaction():
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO delivery_addresses (
                            account_id, recipient_name, phone_number, zip_code, address, detail_address
                        )
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING {_ADDRESS_COLUMNS}
                        """,
                        (
                            account_id,
                            payload.recipient_name,
                            payload.phone_number,
                            payload.zip_code,
                            payload.address,
                            payload.detail_address,
                        ),
                    )
                    row = cur.fetchone()
        return DeliveryAddress(*row)

    def list_delivery_addresses(self, account_id: int) -> list[DeliveryAddress]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_ADDRESS_COLUMNS}
                    FROM delivery_addresses
                    WHERE account_id = %s
                    ORDER BY created_at, address_id
                    """,
                    (account_id,),
                )
                return [DeliveryAddress(*row) for row in cur.fetchall()]

    def delete_delivery_address(self, account_id: int, address_id: int) -> bool:
        """Delete an address owned by ``account_id``; return whether a row was removed."""
        with self._pool.connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        "DELETE FROM delivery_addresses WHERE address_id = %s AND account_id = %s",
                        (address_id, account_id),
                    )
                    return cur.rowcount > 0

    def delete_all(self) -> None:
        """Remove every account and its dependent rows. Used by test and reset tooling."""
        with self._pool.connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        "TRUNCATE delivery_addresses, wish_lists, carts, accounts RESTART IDENTITY"
                    )

    def _map_account(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            identification=row[1],
            password_hash=row[2],
            role=Role(row[3]),
            tier=Tier(row[4]),
            point=row[5],
            amount_to_next_tier=row[6],
            registration_date=row[7],
            created_at=row[8],
            updated_at=row[9],
            name=row[10],
            birth_date=row[11],
            phone_number=row[12],
            refresh_token=row[13],
            cart_id=row[14],
            wish_list_id=row[15],
        )
