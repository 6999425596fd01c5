"""
backend/data_service.py

Client for the data service that owns persistence and authentication.

One interface, two implementations:
- SupabaseDataService: the hosted backend-as-a-service (supabase-py)
- SqliteDataService: local development / test store with the same shape

Queries are table-scoped and fluent, mirroring the hosted client:

    data.table("projects").select("*").eq("id", pid).order("created_at", desc=True).execute().data

Every failure surfaces as DataServiceError (or one of its subclasses) so route
handlers never depend on a backend-specific exception type.
"""

from __future__ import annotations

import hashlib
import re
import secrets
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import jwt

from backend.config import (
    ACCESS_TOKEN_MINUTES,
    ALGORITHM,
    IS_DEV,
    IS_SQLITE,
    DATABASE_PATH,
    SECRET_KEY,
    SUPABASE_ANON_KEY,
    SUPABASE_JWT_SECRET,
    SUPABASE_URL,
    TOKEN_AUDIENCE,
)
from backend.db import get_db_connection, init_sqlite_schema, resolve_sqlite_path, row_to_dict
from domains.funding.metrics import pledge_limit_error


# ---------------------------------------------------------
# Errors
# ---------------------------------------------------------
class DataServiceError(Exception):
    """Any failure talking to the data service."""


class NotFoundError(DataServiceError):
    pass


class PledgeRejectedError(DataServiceError):
    """Pledge refused by the data layer (non-positive or over the remaining amount)."""


class PermissionDeniedError(DataServiceError):
    pass


class AuthError(DataServiceError):
    pass


# ---------------------------------------------------------
# Shared types
# ---------------------------------------------------------
@dataclass
class QueryResult:
    data: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AuthSession:
    user: AuthUser
    # None when the hosted service requires email confirmation first
    access_token: Optional[str] = None


class DataService:
    """Capability boundary: table queries, auth primitives, atomic pledge."""

    TABLES = ("projects", "pledges", "updates")

    def table(self, name: str):
        raise NotImplementedError

    def as_user(self, access_token: str) -> "DataService":
        """A view of the service that acts with the caller's credentials."""
        return self

    def sign_up(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def sign_in(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def get_user(self, access_token: str) -> AuthUser:
        raise NotImplementedError

    def place_pledge(self, project_id: str, user_id: str, amount: float) -> Dict[str, Any]:
        raise NotImplementedError


# ---------------------------------------------------------
# SQLite implementation
# ---------------------------------------------------------
_IDENT = re.compile(r"^[a-z_][a-z0-9_]*$")

# trigger message -> error type
_TRIGGER_ERRORS = {
    "pledge exceeds remaining amount": PledgeRejectedError,
    "only the project owner can post updates": PermissionDeniedError,
}

PBKDF2_ITERATIONS = 200_000


def _ident(name: str) -> str:
    name = name.strip()
    if not _IDENT.match(name):
        raise DataServiceError(f"Invalid column name: {name!r}")
    return name


def _to_db(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _map_sqlite_error(e: sqlite3.Error) -> DataServiceError:
    message = str(e)
    for marker, error_type in _TRIGGER_ERRORS.items():
        if marker in message:
            return error_type(message)
    return DataServiceError(message)


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        _, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return secrets.compare_digest(digest.hex(), expected)


class SqliteTableQuery:
    """Fluent query against one SQLite table (select / eq / order / limit / insert)."""

    def __init__(self, service: "SqliteDataService", table: str):
        if table not in service.TABLES:
            raise DataServiceError(f"Unknown table: {table}")
        self._service = service
        self._table = table
        self._columns = "*"
        self._filters: List[Tuple[str, Any]] = []
        self._orders: List[Tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._rows: Optional[List[Dict[str, Any]]] = None

    def select(self, columns: str = "*") -> "SqliteTableQuery":
        if columns.strip() == "*":
            self._columns = "*"
        else:
            self._columns = ", ".join(_ident(c) for c in columns.split(","))
        return self

    def eq(self, column: str, value: Any) -> "SqliteTableQuery":
        self._filters.append((_ident(column), _to_db(value)))
        return self

    def order(self, column: str, desc: bool = False) -> "SqliteTableQuery":
        self._orders.append((_ident(column), desc))
        return self

    def limit(self, count: int) -> "SqliteTableQuery":
        self._limit = int(count)
        return self

    def insert(self, rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> "SqliteTableQuery":
        self._rows = [rows] if isinstance(rows, dict) else list(rows)
        return self

    def execute(self) -> QueryResult:
        try:
            with self._service.connect() as conn:
                if self._rows is not None:
                    return self._execute_insert(conn)
                return self._execute_select(conn)
        except sqlite3.Error as e:
            raise _map_sqlite_error(e) from e

    def _execute_select(self, conn: sqlite3.Connection) -> QueryResult:
        sql = f"SELECT {self._columns} FROM {self._table}"
        params: List[Any] = []
        if self._filters:
            sql += " WHERE " + " AND ".join(f"{col} = ?" for col, _ in self._filters)
            params.extend(value for _, value in self._filters)
        if self._orders:
            sql += " ORDER BY " + ", ".join(
                f"{col} {'DESC' if desc else 'ASC'}" for col, desc in self._orders
            )
            # Stable order for rows sharing a timestamp
            sql += ", rowid " + ("DESC" if self._orders[0][1] else "ASC")
        if self._limit is not None:
            sql += f" LIMIT {self._limit}"
        rows = conn.execute(sql, params).fetchall()
        return QueryResult(data=[row_to_dict(r) for r in rows])

    def _execute_insert(self, conn: sqlite3.Connection) -> QueryResult:
        inserted_ids = []
        cur = conn.cursor()
        try:
            for row in self._rows:
                row = {_ident(k): _to_db(v) for k, v in row.items()}
                row.setdefault("id", str(uuid.uuid4()))
                cols = ", ".join(row.keys())
                marks = ", ".join("?" for _ in row)
                cur.execute(f"INSERT INTO {self._table} ({cols}) VALUES ({marks})", tuple(row.values()))
                inserted_ids.append(row["id"])
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        data = []
        for row_id in inserted_ids:
            row = conn.execute(f"SELECT * FROM {self._table} WHERE id = ?", (row_id,)).fetchone()
            data.append(row_to_dict(row))
        return QueryResult(data=data)


class SqliteDataService(DataService):
    """Local store with the hosted service's shape; invariants enforced by triggers."""

    def __init__(self, path: Optional[str] = None):
        self.path = resolve_sqlite_path(path)
        with self.connect() as conn:
            init_sqlite_schema(conn)
        if IS_DEV:
            print(f"[DB] Using SQLite at {self.path}")

    def connect(self):
        return get_db_connection(self.path)

    def table(self, name: str) -> SqliteTableQuery:
        return SqliteTableQuery(self, name)

    # -- auth ------------------------------------------------------------
    def _issue_token(self, user: AuthUser) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "email": user.email,
            "aud": TOKEN_AUDIENCE,
            "role": "authenticated",
            "iat": now,
            "exp": now + timedelta(minutes=ACCESS_TOKEN_MINUTES),
        }
        return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)

    def sign_up(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise AuthError("Unable to validate email address: invalid format")
        if len(password or "") < 6:
            raise AuthError("Password should be at least 6 characters")
        user = AuthUser(id=str(uuid.uuid4()), email=email)
        try:
            with self.connect() as conn:
                conn.execute(
                    "INSERT INTO users (id, email, password_hash) VALUES (?, ?, ?)",
                    (user.id, email, hash_password(password)),
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise AuthError("User already registered") from e
        except sqlite3.Error as e:
            raise DataServiceError(str(e)) from e
        return AuthSession(user=user, access_token=self._issue_token(user))

    def sign_in(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        try:
            with self.connect() as conn:
                row = conn.execute(
                    "SELECT id, email, password_hash FROM users WHERE email = ?", (email,)
                ).fetchone()
        except sqlite3.Error as e:
            raise DataServiceError(str(e)) from e
        if row is None or not verify_password(password or "", row["password_hash"]):
            raise AuthError("Invalid login credentials")
        user = AuthUser(id=row["id"], email=row["email"])
        return AuthSession(user=user, access_token=self._issue_token(user))

    def get_user(self, access_token: str) -> AuthUser:
        try:
            payload = jwt.decode(access_token, SECRET_KEY, algorithms=[ALGORITHM], audience=TOKEN_AUDIENCE)
        except jwt.ExpiredSignatureError as e:
            raise AuthError("Token expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthError("Invalid token") from e
        user_id = payload.get("sub")
        if not user_id:
            raise AuthError("Invalid token payload")
        return AuthUser(id=str(user_id), email=payload.get("email"))

    # -- pledges -----------------------------------------------------------
    def place_pledge(self, project_id: str, user_id: str, amount: float) -> Dict[str, Any]:
        """
        Insert a pledge atomically.
        BEGIN IMMEDIATE takes the write lock before the remaining amount is
        read, so concurrent pledges cannot jointly overshoot the goal.
        """
        with self.connect() as conn:
            conn.isolation_level = None
            cur = conn.cursor()
            try:
                cur.execute("BEGIN IMMEDIATE")
                project = cur.execute(
                    "SELECT goal_amount, current_amount FROM projects WHERE id = ?", (project_id,)
                ).fetchone()
                if project is None:
                    raise NotFoundError("Project not found")
                refusal = pledge_limit_error(amount, project["current_amount"], project["goal_amount"])
                if refusal:
                    raise PledgeRejectedError(refusal)
                pledge_id = str(uuid.uuid4())
                cur.execute(
                    "INSERT INTO pledges (id, amount, project_id, user_id) VALUES (?, ?, ?, ?)",
                    (pledge_id, amount, project_id, user_id),
                )
                row = cur.execute("SELECT * FROM pledges WHERE id = ?", (pledge_id,)).fetchone()
                cur.execute("COMMIT")
                return row_to_dict(row)
            except sqlite3.Error as e:
                if conn.in_transaction:
                    cur.execute("ROLLBACK")
                raise _map_sqlite_error(e) from e
            except DataServiceError:
                if conn.in_transaction:
                    cur.execute("ROLLBACK")
                raise


# ---------------------------------------------------------
# Supabase implementation
# ---------------------------------------------------------
# Postgres error codes raised by the hosted schema (see backend/migrate.py)
_PG_NOT_FOUND = "P0002"
_PG_PLEDGE_REJECTED = "P0001"
_PG_INSUFFICIENT_PRIVILEGE = "42501"
# Malformed uuid in an id filter: nothing can match it
_PG_INVALID_TEXT = "22P02"


def _error_message(e: Exception) -> str:
    return getattr(e, "message", None) or str(e)


def _map_api_error(e: Exception) -> DataServiceError:
    code = getattr(e, "code", None)
    message = _error_message(e)
    if code in (_PG_NOT_FOUND, _PG_INVALID_TEXT):
        return NotFoundError(message)
    if code == _PG_PLEDGE_REJECTED:
        return PledgeRejectedError(message)
    if code == _PG_INSUFFICIENT_PRIVILEGE:
        return PermissionDeniedError(message)
    return DataServiceError(message)


class SupabaseTableQuery:
    """Wraps a postgrest request builder so errors surface as DataServiceError."""

    def __init__(self, builder):
        self._builder = builder

    def select(self, columns: str = "*") -> "SupabaseTableQuery":
        self._builder = self._builder.select(columns)
        return self

    def eq(self, column: str, value: Any) -> "SupabaseTableQuery":
        self._builder = self._builder.eq(column, _to_db(value))
        return self

    def order(self, column: str, desc: bool = False) -> "SupabaseTableQuery":
        self._builder = self._builder.order(column, desc=desc)
        return self

    def limit(self, count: int) -> "SupabaseTableQuery":
        self._builder = self._builder.limit(count)
        return self

    def insert(self, rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> "SupabaseTableQuery":
        if isinstance(rows, dict):
            rows = [rows]
        self._builder = self._builder.insert([{k: _to_db(v) for k, v in r.items()} for r in rows])
        return self

    def execute(self) -> QueryResult:
        try:
            response = self._builder.execute()
        except Exception as e:
            raise _map_api_error(e) from e
        return QueryResult(data=list(response.data or []))


class SupabaseDataService(DataService):
    """The hosted data service, reached with the public (anon) key."""

    def __init__(
        self,
        url: str = SUPABASE_URL,
        key: str = SUPABASE_ANON_KEY,
        jwt_secret: str = SUPABASE_JWT_SECRET,
        client: Any = None,
    ):
        from supabase import create_client

        self.url = url
        self.key = key
        self.jwt_secret = jwt_secret
        self.client = client if client is not None else create_client(url, key)

    def _fresh_client(self):
        # Auth calls store the session on the client they run on, so they
        # never run on the shared one.
        from supabase import create_client
        return create_client(self.url, self.key)

    def as_user(self, access_token: str) -> "SupabaseDataService":
        client = self._fresh_client()
        client.postgrest.auth(access_token)
        return SupabaseDataService(self.url, self.key, self.jwt_secret, client=client)

    def table(self, name: str) -> SupabaseTableQuery:
        if name not in self.TABLES:
            raise DataServiceError(f"Unknown table: {name}")
        return SupabaseTableQuery(self.client.table(name))

    # -- auth ------------------------------------------------------------
    @staticmethod
    def _session_from(response) -> AuthSession:
        user = response.user
        if user is None:
            raise AuthError("Authentication failed")
        session = response.session
        return AuthSession(
            user=AuthUser(id=str(user.id), email=user.email),
            access_token=session.access_token if session else None,
        )

    def sign_up(self, email: str, password: str) -> AuthSession:
        try:
            response = self._fresh_client().auth.sign_up({"email": email, "password": password})
        except Exception as e:
            raise AuthError(_error_message(e)) from e
        return self._session_from(response)

    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = self._fresh_client().auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            raise AuthError(_error_message(e)) from e
        return self._session_from(response)

    def get_user(self, access_token: str) -> AuthUser:
        if self.jwt_secret:
            try:
                payload = jwt.decode(
                    access_token, self.jwt_secret, algorithms=["HS256"], audience=TOKEN_AUDIENCE
                )
            except jwt.ExpiredSignatureError as e:
                raise AuthError("Token expired") from e
            except jwt.InvalidTokenError as e:
                raise AuthError("Invalid token") from e
            if not payload.get("sub"):
                raise AuthError("Invalid token payload")
            return AuthUser(id=str(payload["sub"]), email=payload.get("email"))

        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            raise AuthError(_error_message(e)) from e
        if response is None or response.user is None:
            raise AuthError("Invalid token")
        return AuthUser(id=str(response.user.id), email=response.user.email)

    # -- pledges -----------------------------------------------------------
    def place_pledge(self, project_id: str, user_id: str, amount: float) -> Dict[str, Any]:
        """
        Calls the place_pledge() database function, which locks the project
        row, checks the remaining amount and inserts the pledge for auth.uid().
        Must be called on a user-scoped service (as_user).
        """
        try:
            response = self.client.rpc(
                "place_pledge", {"p_project_id": project_id, "p_amount": amount}
            ).execute()
        except Exception as e:
            raise _map_api_error(e) from e
        data = response.data
        if isinstance(data, list):
            data = data[0] if data else {}
        return data or {}


def build_data_service() -> DataService:
    """Construct the process-wide data service for the configured backend."""
    if IS_SQLITE:
        return SqliteDataService(DATABASE_PATH)
    return SupabaseDataService()
