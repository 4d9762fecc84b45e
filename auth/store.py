"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account / _row_to_qr_code are the
mappers. Services and dependencies never touch SQL directly.

Store contract (what the services rely on):
  find-by-filter with pagination  -> find_accounts() / count_accounts()
  find-by-id                      -> get_by_id() / get_role()
  insert                          -> create_account() / insert_qr_codes()
  update-by-id                    -> update_account()
  delete-by-id                    -> delete_account()
  unique-index violation          -> sqlalchemy.exc.IntegrityError, raised as-is

Every mutation is a single statement on a single row (last writer wins), except
insert_qr_codes() which writes one batch inside one transaction.

Security:
  All queries use bound parameters. No f-strings in SQL. Search terms are
  bound into ILIKE patterns, never interpolated.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import ROLE_SUPERADMIN, Account, QrCode

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("phone_number", String(20)),
    Column("department", String(100)),
    Column("position", String(100)),
    Column("failed_attempt_count", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),  # ISO 8601 UTC; NULL = never locked
    Column("last_login", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_qr_codes = Table(
    "qr_codes",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("code", String(200), nullable=False, unique=True),
    Column("created_by", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
)

# Columns callers may change through update_account(). id, email and
# created_at are immutable after insert.
_UPDATABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "hashed_password",
        "role",
        "is_active",
        "phone_number",
        "department",
        "position",
        "failed_attempt_count",
        "locked_until",
        "last_login",
    }
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup: stripped and lowercased."""
    return email.strip().lower()


def _escape_like(text: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _account_filter(search: str = "", roles: list[str] | None = None, is_active: bool | None = None) -> list:
    clauses = []
    if search:
        pattern = f"%{_escape_like(search)}%"
        clauses.append(
            or_(
                _accounts.c.first_name.ilike(pattern, escape="\\"),
                _accounts.c.last_name.ilike(pattern, escape="\\"),
                _accounts.c.email.ilike(pattern, escape="\\"),
            )
        )
    if roles:
        clauses.append(_accounts.c.role.in_(roles))
    if is_active is not None:
        clauses.append(_accounts.c.is_active == (1 if is_active else 0))
    return clauses


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account and QrCode entities.

    Usage:
        store = AccountStore("sqlite:///rolekeeper.db")
        account_id = store.create_account(Account(email="jo@x.com", ...))
        account = store.get_by_email("jo@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists. The
        UNIQUE index is the source of truth -- a pre-check in the service can
        race with a concurrent signup, this cannot.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    email=normalize_email(account.email),
                    first_name=account.first_name,
                    last_name=account.last_name,
                    hashed_password=account.hashed_password,
                    role=account.role,
                    is_active=1 if account.is_active else 0,
                    phone_number=account.phone_number,
                    department=account.department,
                    position=account.position,
                    failed_attempt_count=0,
                    locked_until=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by normalized email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_role(self, account_id: int) -> str | None:
        """Return only the role of an account, or None if it does not exist.

        Tier checks need the target's role before anything else is loaded.
        """
        with self.engine.connect() as conn:
            return conn.execute(select(_accounts.c.role).where(_accounts.c.id == account_id)).scalar()

    def find_accounts(
        self,
        search: str = "",
        roles: list[str] | None = None,
        is_active: bool | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[Account]:
        """Return one page of accounts matching the filter, newest first."""
        query = (
            _accounts.select()
            .where(*_account_filter(search, roles, is_active))
            .order_by(_accounts.c.created_at.desc(), _accounts.c.id.desc())
            .offset(offset)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_account(r) for r in rows]

    def count_accounts(
        self,
        search: str = "",
        roles: list[str] | None = None,
        is_active: bool | None = None,
        created_since: str | None = None,
    ) -> int:
        """Count accounts matching the same filter find_accounts() uses.

        created_since is an ISO 8601 UTC lower bound on created_at. Stored
        timestamps share one format, so string comparison orders correctly.
        """
        clauses = _account_filter(search, roles, is_active)
        if created_since is not None:
            clauses.append(_accounts.c.created_at >= created_since)
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts).where(*clauses)).scalar()
        return result or 0

    def count_active_superadmins(self) -> int:
        """Return the number of active superadmin accounts."""
        return self.count_accounts(roles=[ROLE_SUPERADMIN], is_active=True)

    def update_account(self, account_id: int, **fields) -> bool:
        """Update mutable fields on an existing account and stamp updated_at.

        is_active must be passed as bool; this method converts to int for SQLite.
        Unknown field names raise ValueError rather than being silently dropped.

        Returns True if a row was updated, False if account_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found.

        Tier and last-superadmin checks are the caller's responsibility.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # QR codes
    # ------------------------------------------------------------------

    def insert_qr_codes(self, codes: list[str], created_by: int) -> list[QrCode]:
        """Insert a batch of codes in one transaction and return the stored records.

        Raises sqlalchemy.exc.IntegrityError if any code already exists (or is
        repeated inside the batch); the transaction rolls back, so either the
        whole batch is stored or none of it is.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _qr_codes.insert(),
                [{"code": code, "created_by": created_by, "created_at": now} for code in codes],
            )
            rows = conn.execute(_qr_codes.select().where(_qr_codes.c.code.in_(codes)).order_by(_qr_codes.c.id)).fetchall()
        return [_row_to_qr_code(r) for r in rows]

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except Exception:
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        hashed_password=row.hashed_password,
        role=row.role,
        is_active=bool(row.is_active),
        phone_number=row.phone_number,
        department=row.department,
        position=row.position,
        failed_attempt_count=row.failed_attempt_count or 0,
        locked_until=row.locked_until,
        last_login=row.last_login,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_qr_code(row) -> QrCode:
    return QrCode(
        id=row.id,
        code=row.code,
        created_by=row.created_by,
        created_at=row.created_at,
    )
