"""SQLite storage implementation."""

import json
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import Account, ChatMessage, Registration, TraceEvent, Workshop

_LEADING_ARTICLE = re.compile(r"^(the|a|an)\s+")
_TRAILING_NOUN = re.compile(r"\s+(workshop|session|class|course)$")

_WORKSHOP_COLUMNS = (
    "id, title, capacity, description, location, start_date, end_date, price, instructor"
)
_REGISTRATION_COLUMNS = (
    "id, workshop_id, first_name, last_name, email, phone, user_id, status, created_at"
)


def title_candidates(text: str) -> list[str]:
    """Search strings tried in order for a fuzzy title lookup."""
    first = " ".join(text.lower().split())
    candidates = [first]
    without_article = _LEADING_ARTICLE.sub("", first)
    candidates.append(without_article)
    candidates.append(_TRAILING_NOUN.sub("", without_article))

    unique = []
    for candidate in candidates:
        if candidate and candidate not in unique:
            unique.append(candidate)
    return unique


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _format_ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _row_to_workshop(row) -> Workshop:
    return Workshop(
        id=row[0],
        title=row[1],
        capacity=row[2],
        description=row[3],
        location=row[4],
        start_date=_parse_ts(row[5]),
        end_date=_parse_ts(row[6]),
        price=row[7],
        instructor=row[8],
    )


def _row_to_registration(row) -> Registration:
    return Registration(
        id=row[0],
        workshop_id=row[1],
        first_name=row[2],
        last_name=row[3],
        email=row[4],
        phone=row[5],
        user_id=row[6],
        status=row[7],
        created_at=_parse_ts(row[8]),
    )


class IWorkshopDirectory(Protocol):
    """Read-only query surface for workshops."""

    async def find_workshop_by_fuzzy_title(self, text: str) -> Workshop | None:
        """Case-insensitive substring match; first match wins."""
        ...

    async def list_workshops(self) -> list[Workshop]:
        """All workshops ordered by start date."""
        ...

    async def count_registrations(self, workshop_id: str) -> int:
        """Number of confirmed registrations for a workshop."""
        ...


class IRegistrationStore(Protocol):
    """Create/read access to registration records."""

    async def is_registered(self, workshop_id: str, user_id: str) -> bool:
        """Whether the user holds a confirmed registration for the workshop."""
        ...

    async def insert_registration(self, registration: Registration) -> Registration:
        """Insert a registration record."""
        ...

    async def insert_registration_if_open(
        self, registration: Registration, capacity: int
    ) -> bool:
        """Insert only while seats remain and the user holds no seat yet."""
        ...

    async def cancel_registration(self, workshop_id: str, user_id: str) -> bool:
        """Mark the user's confirmed registration as cancelled."""
        ...

    async def most_recent_registration(self, user_id: str) -> Registration | None:
        """Latest registration made by the user, if any."""
        ...

    async def list_user_registrations(
        self, user_id: str
    ) -> list[tuple[Registration, Workshop]]:
        """Registrations of a user joined with their workshops."""
        ...


class IChatHistoryStore(Protocol):
    """Durable transcript for authenticated sessions."""

    async def save_chat_message(
        self, user_id: str, session_id: str, message: ChatMessage
    ) -> None:
        """Append a chat message."""
        ...

    async def get_chat_history(self, user_id: str, session_id: str) -> list[ChatMessage]:
        """Messages of a session in insertion order."""
        ...


class IAccountStore(Protocol):
    """Stored profiles of authenticated users."""

    async def get_account(self, user_id: str) -> Account | None:
        """Get an account by user ID."""
        ...


class IStorage(IWorkshopDirectory, IRegistrationStore, IChatHistoryStore, IAccountStore, Protocol):
    """Persistent storage for all system data (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def save_workshop(self, workshop: Workshop) -> None:
        """Insert or replace a workshop."""
        ...

    async def save_account(self, account: Account) -> None:
        """Insert or replace an account."""
        ...

    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Workshops
    async def save_workshop(self, workshop: Workshop) -> None:
        """Insert or replace a workshop."""
        conn = self._require_conn()

        await conn.execute(
            f"""
            INSERT OR REPLACE INTO workshops ({_WORKSHOP_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                workshop.id or str(uuid.uuid4()),
                workshop.title,
                workshop.capacity,
                workshop.description,
                workshop.location,
                _format_ts(workshop.start_date),
                _format_ts(workshop.end_date),
                workshop.price,
                workshop.instructor,
            ),
        )
        await conn.commit()

    async def list_workshops(self) -> list[Workshop]:
        """All workshops ordered by start date."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_WORKSHOP_COLUMNS}
            FROM workshops
            ORDER BY start_date ASC, rowid ASC
            """
        )
        rows = await cursor.fetchall()
        return [_row_to_workshop(row) for row in rows]

    async def find_workshop_by_fuzzy_title(self, text: str) -> Workshop | None:
        """Case-insensitive substring match against titles; first match wins."""
        conn = self._require_conn()

        for candidate in title_candidates(text):
            cursor = await conn.execute(
                f"""
                SELECT {_WORKSHOP_COLUMNS}
                FROM workshops
                WHERE lower(title) LIKE ? ESCAPE '\\'
                ORDER BY start_date ASC, rowid ASC
                LIMIT 1
                """,
                (f"%{_escape_like(candidate)}%",),
            )
            row = await cursor.fetchone()
            if row:
                return _row_to_workshop(row)

        return None

    async def count_registrations(self, workshop_id: str) -> int:
        """Number of confirmed registrations for a workshop."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT COUNT(*)
            FROM registrations
            WHERE workshop_id = ? AND status = 'confirmed'
            """,
            (workshop_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    # Registrations
    async def is_registered(self, workshop_id: str, user_id: str) -> bool:
        """Whether the user holds a confirmed registration for the workshop."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT COUNT(*)
            FROM registrations
            WHERE workshop_id = ? AND user_id = ? AND status = 'confirmed'
            """,
            (workshop_id, user_id),
        )
        row = await cursor.fetchone()
        return bool(row and row[0] > 0)

    async def insert_registration(self, registration: Registration) -> Registration:
        """Insert a registration record, filling id and created_at if absent."""
        conn = self._require_conn()

        if not registration.id:
            registration.id = str(uuid.uuid4())
        if registration.created_at is None:
            registration.created_at = datetime.now(timezone.utc)

        await conn.execute(
            f"""
            INSERT INTO registrations ({_REGISTRATION_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                registration.id,
                registration.workshop_id,
                registration.first_name,
                registration.last_name,
                registration.email,
                registration.phone,
                registration.user_id,
                registration.status,
                _format_ts(registration.created_at),
            ),
        )
        await conn.commit()
        return registration

    async def insert_registration_if_open(
        self, registration: Registration, capacity: int
    ) -> bool:
        """Insert only while seats remain and the user holds no seat yet.

        The capacity and duplicate checks run inside the INSERT statement,
        so two concurrent callers can never both take the last seat.
        Returns False when nothing was inserted.
        """
        conn = self._require_conn()

        if not registration.id:
            registration.id = str(uuid.uuid4())
        if registration.created_at is None:
            registration.created_at = datetime.now(timezone.utc)

        cursor = await conn.execute(
            f"""
            INSERT INTO registrations ({_REGISTRATION_COLUMNS})
            SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?
            WHERE (
                SELECT COUNT(*) FROM registrations
                WHERE workshop_id = ? AND status = 'confirmed'
            ) < ?
            AND (
                ? IS NULL OR NOT EXISTS (
                    SELECT 1 FROM registrations
                    WHERE workshop_id = ? AND user_id = ? AND status = 'confirmed'
                )
            )
            """,
            (
                registration.id,
                registration.workshop_id,
                registration.first_name,
                registration.last_name,
                registration.email,
                registration.phone,
                registration.user_id,
                registration.status,
                _format_ts(registration.created_at),
                registration.workshop_id,
                capacity,
                registration.user_id,
                registration.workshop_id,
                registration.user_id,
            ),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def cancel_registration(self, workshop_id: str, user_id: str) -> bool:
        """Mark the user's confirmed registration as cancelled."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            UPDATE registrations
            SET status = 'cancelled'
            WHERE workshop_id = ? AND user_id = ? AND status = 'confirmed'
            """,
            (workshop_id, user_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def most_recent_registration(self, user_id: str) -> Registration | None:
        """Latest registration made by the user, if any."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_REGISTRATION_COLUMNS}
            FROM registrations
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """,
            (user_id,),
        )
        row = await cursor.fetchone()
        return _row_to_registration(row) if row else None

    async def list_user_registrations(
        self, user_id: str
    ) -> list[tuple[Registration, Workshop]]:
        """Registrations of a user joined with their workshops."""
        conn = self._require_conn()

        registration_cols = ", ".join(f"r.{c.strip()}" for c in _REGISTRATION_COLUMNS.split(","))
        workshop_cols = ", ".join(f"w.{c.strip()}" for c in _WORKSHOP_COLUMNS.split(","))
        cursor = await conn.execute(
            f"""
            SELECT {registration_cols}, {workshop_cols}
            FROM registrations r
            JOIN workshops w ON w.id = r.workshop_id
            WHERE r.user_id = ?
            ORDER BY w.start_date ASC, r.rowid ASC
            """,
            (user_id,),
        )
        rows = await cursor.fetchall()

        return [(_row_to_registration(row[:9]), _row_to_workshop(row[9:])) for row in rows]

    # Accounts
    async def save_account(self, account: Account) -> None:
        """Insert or replace an account."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO accounts (id, email, full_name)
            VALUES (?, ?, ?)
            """,
            (account.id, account.email, account.full_name),
        )
        await conn.commit()

    async def get_account(self, user_id: str) -> Account | None:
        """Get an account by user ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, email, full_name
            FROM accounts
            WHERE id = ?
            """,
            (user_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return Account(id=row[0], email=row[1], full_name=row[2])

    # Chat history
    async def save_chat_message(
        self, user_id: str, session_id: str, message: ChatMessage
    ) -> None:
        """Append a chat message to the session transcript."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO ai_chat_history (user_id, session_id, role, message, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                user_id,
                session_id,
                message.role,
                message.content,
                _format_ts(datetime.now(timezone.utc)),
            ),
        )
        await conn.commit()

    async def get_chat_history(self, user_id: str, session_id: str) -> list[ChatMessage]:
        """Messages of a session in insertion order."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT role, message
            FROM ai_chat_history
            WHERE user_id = ? AND session_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (user_id, session_id),
        )
        rows = await cursor.fetchall()
        return [ChatMessage(role=row[0], content=row[1]) for row in rows]

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                _format_ts(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters (newest first)."""
        conn = self._require_conn()

        conditions = []
        params = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_format_ts(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_parse_ts(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "registrations",
            "ai_chat_history",
            "trace_events",
            "accounts",
            "workshops",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
