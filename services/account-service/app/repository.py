"""Database repository for account, preference and device-token data."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Tuple

from psycopg import errors, sql
from psycopg import Error as PsycopgError
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from schemas import AccountStatus, Platform

from .domain.account import DEFAULT_PREFERENCES, PREFERENCE_FIELDS, Account, DeviceToken, Preference
from .domain.contracts import NewAccount
from .errors import ConflictError, InternalError, NotFoundError

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = "account_id, email, password_hash, display_name, status, created_at, updated_at"
_PREFERENCE_COLUMNS = "account_id, " + ", ".join(PREFERENCE_FIELDS) + ", created_at, updated_at"
_DEVICE_TOKEN_COLUMNS = "token, account_id, platform, is_active, created_at, updated_at"


class AccountRepository:
    """Postgres-backed persistence for the account aggregate.

    Every public method runs in its own transaction. Constraint violations are
    translated into domain errors; any other driver error is logged and
    re-raised as :class:`InternalError` so storage details never leak.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    @contextmanager
    def _translate_errors(self, operation: str, account_id: str | None = None) -> Iterator[None]:
        try:
            yield
        except errors.UniqueViolation as exc:
            raise ConflictError("account with this email already exists", code="EMAIL_TAKEN") from exc
        except errors.ForeignKeyViolation as exc:
            raise NotFoundError("account", account_id or "") from exc
        except PsycopgError as exc:
            logger.exception("storage failure during %s", operation)
            raise InternalError("storage failure") from exc

    # -- accounts -------------------------------------------------------

    def create_account(self, payload: NewAccount) -> Account:
        """Insert an account and its preference row in one transaction."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        preferences = {**DEFAULT_PREFERENCES, **payload.preferences}
        with self._translate_errors("create_account"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts ({_ACCOUNT_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_ACCOUNT_COLUMNS}
                        """,
                        (
                            account_id,
                            payload.email,
                            payload.password_hash,
                            payload.display_name,
                            AccountStatus.active.value,
                            now,
                            now,
                        ),
                    )
                    account = self._map_account(cur.fetchone())
                    cur.execute(
                        f"""
                        INSERT INTO account_preferences ({_PREFERENCE_COLUMNS})
                        VALUES (%s, {", ".join(["%s"] * len(PREFERENCE_FIELDS))}, %s, %s)
                        RETURNING {_PREFERENCE_COLUMNS}
                        """,
                        (account_id, *[preferences[name] for name in PREFERENCE_FIELDS], now, now),
                    )
                    account.preferences = self._map_preference(cur.fetchone())
                conn.commit()
        return account

    def get_account(self, account_id: str) -> Account | None:
        """Load an account with its preferences and active device tokens."""
        with self._translate_errors("get_account"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE account_id = %s",
                        (account_id,),
                    )
                    row = cur.fetchone()
                    if not row:
                        return None
                    account = self._map_account(row)
                    account.preferences = self._fetch_preference(cur, account_id)
                    cur.execute(
                        f"""
                        SELECT {_DEVICE_TOKEN_COLUMNS}
                        FROM device_tokens
                        WHERE account_id = %s AND is_active
                        ORDER BY created_at
                        """,
                        (account_id,),
                    )
                    account.device_tokens = [self._map_device_token(r) for r in cur.fetchall()]
        return account

    def find_by_email(self, email: str) -> Account | None:
        """Return the account owning ``email`` regardless of status."""
        with self._translate_errors("find_by_email"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s",
                        (email,),
                    )
                    row = cur.fetchone()
                    if not row:
                        return None
                    account = self._map_account(row)
                    account.preferences = self._fetch_preference(cur, account.account_id)
        return account

    def update_account(self, account_id: str, changes: dict[str, Any]) -> Account | None:
        """Apply column ``changes`` (email, display_name, status) and return the new row."""
        assignments = [
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
            for column in changes
        ]
        assignments.append(sql.SQL("updated_at = {}").format(sql.Placeholder()))
        query = sql.SQL("UPDATE accounts SET {} WHERE account_id = {} RETURNING {}").format(
            sql.SQL(", ").join(assignments),
            sql.Placeholder(),
            sql.SQL(_ACCOUNT_COLUMNS),
        )
        params = [
            value.value if isinstance(value, AccountStatus) else value
            for value in changes.values()
        ]
        params.extend([datetime.now(timezone.utc), account_id])
        with self._translate_errors("update_account"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                    if not row:
                        return None
                    account = self._map_account(row)
                    account.preferences = self._fetch_preference(cur, account_id)
                conn.commit()
        return account

    def count_accounts(self) -> int:
        with self._translate_errors("count_accounts"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute("SELECT COUNT(*) FROM accounts")
                    (total,) = cur.fetchone()
        return int(total)

    def list_accounts(self, *, offset: int, limit: int) -> list[Account]:
        """Return a page of accounts (with preferences), newest first."""
        with self._translate_errors("list_accounts"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        SELECT {_ACCOUNT_COLUMNS}
                        FROM accounts
                        ORDER BY created_at DESC, account_id DESC
                        OFFSET %s LIMIT %s
                        """,
                        (offset, limit),
                    )
                    accounts = [self._map_account(row) for row in cur.fetchall()]
                    for account in accounts:
                        account.preferences = self._fetch_preference(cur, account.account_id)
        return accounts

    # -- preferences ----------------------------------------------------

    def get_preference(self, account_id: str) -> Preference | None:
        with self._translate_errors("get_preference"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    return self._fetch_preference(cur, account_id)

    def insert_default_preference(self, account_id: str) -> Tuple[Preference, bool]:
        """Create the default row if absent; return ``(row, created)``.

        Concurrent creators race on the unique ``account_id``; the loser's
        insert is a no-op and it re-reads the winner's row.
        """
        now = datetime.now(timezone.utc)
        with self._translate_errors("insert_default_preference", account_id):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO account_preferences ({_PREFERENCE_COLUMNS})
                        VALUES (%s, {", ".join(["%s"] * len(PREFERENCE_FIELDS))}, %s, %s)
                        ON CONFLICT (account_id) DO NOTHING
                        RETURNING {_PREFERENCE_COLUMNS}
                        """,
                        (account_id, *[DEFAULT_PREFERENCES[name] for name in PREFERENCE_FIELDS], now, now),
                    )
                    row = cur.fetchone()
                    created = row is not None
                    preference = (
                        self._map_preference(row) if created else self._fetch_preference(cur, account_id)
                    )
                conn.commit()
        if preference is None:
            raise InternalError("preference row vanished after upsert")
        return preference, created

    def upsert_preference(self, account_id: str, fields: dict[str, Any]) -> Preference:
        """Write ``fields`` over the existing row, or over the defaults when none exists."""
        now = datetime.now(timezone.utc)
        values = {**DEFAULT_PREFERENCES, **fields}
        columns = [sql.Identifier("account_id"), *(sql.Identifier(name) for name in PREFERENCE_FIELDS)]
        columns.extend([sql.Identifier("created_at"), sql.Identifier("updated_at")])
        updates = [
            sql.SQL("{0} = EXCLUDED.{0}").format(sql.Identifier(name)) for name in fields
        ]
        updates.append(sql.SQL("updated_at = EXCLUDED.updated_at"))
        query = sql.SQL(
            "INSERT INTO account_preferences ({}) VALUES ({}) "
            "ON CONFLICT (account_id) DO UPDATE SET {} RETURNING {}"
        ).format(
            sql.SQL(", ").join(columns),
            sql.SQL(", ").join([sql.Placeholder()] * len(columns)),
            sql.SQL(", ").join(updates),
            sql.SQL(_PREFERENCE_COLUMNS),
        )
        params = [account_id, *[values[name] for name in PREFERENCE_FIELDS], now, now]
        with self._translate_errors("upsert_preference", account_id):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                conn.commit()
        return self._map_preference(row)

    # -- device tokens --------------------------------------------------

    def upsert_device_token(
        self, account_id: str, token: str, platform: Platform
    ) -> Tuple[DeviceToken, Optional[str]]:
        """Claim ``token`` for ``account_id``; return the row and the previous owner, if any."""
        now = datetime.now(timezone.utc)
        with self._translate_errors("upsert_device_token", account_id):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT account_id FROM device_tokens WHERE token = %s FOR UPDATE",
                        (token,),
                    )
                    previous = cur.fetchone()
                    cur.execute(
                        f"""
                        INSERT INTO device_tokens ({_DEVICE_TOKEN_COLUMNS})
                        VALUES (%s, %s, %s, TRUE, %s, %s)
                        ON CONFLICT (token) DO UPDATE
                        SET account_id = EXCLUDED.account_id,
                            platform = EXCLUDED.platform,
                            is_active = TRUE,
                            updated_at = EXCLUDED.updated_at
                        RETURNING {_DEVICE_TOKEN_COLUMNS}
                        """,
                        (token, account_id, platform.value, now, now),
                    )
                    row = cur.fetchone()
                conn.commit()
        previous_owner = previous[0] if previous and previous[0] != account_id else None
        return self._map_device_token(row), previous_owner

    def deactivate_device_token(self, account_id: str, token: str) -> int:
        """Flip ``is_active`` off for the matching row; return the number of rows matched."""
        with self._translate_errors("deactivate_device_token"):
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE device_tokens
                        SET is_active = FALSE, updated_at = NOW()
                        WHERE account_id = %s AND token = %s
                        """,
                        (account_id, token),
                    )
                    matched = cur.rowcount
                conn.commit()
        return matched

    def list_active_device_tokens(self, account_id: str) -> list[DeviceToken]:
        with self._translate_errors("list_active_device_tokens"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        SELECT {_DEVICE_TOKEN_COLUMNS}
                        FROM device_tokens
                        WHERE account_id = %s AND is_active
                        ORDER BY created_at
                        """,
                        (account_id,),
                    )
                    return [self._map_device_token(row) for row in cur.fetchall()]

    def ping(self) -> bool:
        try:
            with self._pool.connection() as conn:
                conn.execute("SELECT 1")
            return True
        except PsycopgError as exc:
            logger.warning("database health check failed: %s", exc)
            return False

    # -- mapping --------------------------------------------------------

    def _fetch_preference(self, cur, account_id: str) -> Preference | None:
        cur.execute(
            f"SELECT {_PREFERENCE_COLUMNS} FROM account_preferences WHERE account_id = %s",
            (account_id,),
        )
        row = cur.fetchone()
        return self._map_preference(row) if row else None

    def _map_account(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            email=row[1],
            password_hash=row[2],
            display_name=row[3],
            status=AccountStatus(row[4]),
            created_at=row[5],
            updated_at=row[6],
        )

    def _map_preference(self, row: tuple) -> Preference:
        values = dict(zip(PREFERENCE_FIELDS, row[1:-2]))
        return Preference(account_id=str(row[0]), created_at=row[-2], updated_at=row[-1], **values)

    def _map_device_token(self, row: tuple) -> DeviceToken:
        return DeviceToken(
            token=row[0],
            account_id=str(row[1]),
            platform=Platform(row[2]),
            is_active=row[3],
            created_at=row[4],
            updated_at=row[5],
        )
