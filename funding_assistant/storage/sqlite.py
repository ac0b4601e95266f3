"""
SQLite-backed call store.

Funding calls and knowledge entries live in two tables; embeddings are
float32 BLOBs ranked in numpy after SQL pre-filtering on the active flag
and deadline. Blocking sqlite3 calls run in a worker thread.
"""

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import structlog

from funding_assistant.core.exceptions import StoreError
from funding_assistant.core.models import (
    CallFilters,
    CallType,
    FundingCall,
    KnowledgeEntry,
    RecordKind,
    ScrapedCall,
    Source,
    UpsertResult,
)

from .base import CallStore, Record, apply_scrape, new_call, text_matches
from .vectors import pack, rank_by_distance, unpack

logger = structlog.get_logger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS funding_calls (
        id TEXT PRIMARY KEY,
        url TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        title_en TEXT,
        description TEXT NOT NULL,
        description_en TEXT,
        source TEXT NOT NULL,
        call_type TEXT NOT NULL,
        sectors_json TEXT NOT NULL,
        target_audience_json TEXT NOT NULL,
        min_amount INTEGER,
        max_amount INTEGER,
        co_financing INTEGER,
        de_minimis INTEGER NOT NULL,
        open_date TEXT,
        deadline TEXT NOT NULL,
        application_url TEXT,
        contact_email TEXT,
        contact_phone TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        embedding BLOB,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        scraped_at TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_funding_calls_deadline ON funding_calls(deadline);",
    "CREATE INDEX IF NOT EXISTS idx_funding_calls_source ON funding_calls(source);",
    """
    CREATE TABLE IF NOT EXISTS knowledge_base (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        category TEXT NOT NULL,
        embedding BLOB,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """,
]

CALL_COLUMNS = [
    "id", "url", "title", "title_en", "description", "description_en",
    "source", "call_type", "sectors_json", "target_audience_json",
    "min_amount", "max_amount", "co_financing", "de_minimis",
    "open_date", "deadline", "application_url", "contact_email",
    "contact_phone", "is_active", "embedding",
    "created_at", "updated_at", "scraped_at",
]

TABLES = {
    RecordKind.FUNDING_CALL: "funding_calls",
    RecordKind.KNOWLEDGE: "knowledge_base",
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def call_to_row(call: FundingCall) -> dict:
    return {
        "id": call.id,
        "url": call.url,
        "title": call.title,
        "title_en": call.title_en,
        "description": call.description,
        "description_en": call.description_en,
        "source": call.source.value,
        "call_type": call.call_type.value,
        "sectors_json": json.dumps(call.sectors),
        "target_audience_json": json.dumps(call.target_audience),
        "min_amount": call.min_amount,
        "max_amount": call.max_amount,
        "co_financing": call.co_financing,
        "de_minimis": 1 if call.de_minimis else 0,
        "open_date": _iso(call.open_date),
        "deadline": _iso(call.deadline),
        "application_url": call.application_url,
        "contact_email": call.contact_email,
        "contact_phone": call.contact_phone,
        "is_active": 1 if call.is_active else 0,
        "embedding": pack(call.embedding),
        "created_at": _iso(call.created_at),
        "updated_at": _iso(call.updated_at),
        "scraped_at": _iso(call.scraped_at),
    }


def row_to_call(row: sqlite3.Row) -> FundingCall:
    return FundingCall(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        title_en=row["title_en"],
        description=row["description"],
        description_en=row["description_en"],
        source=Source(row["source"]),
        call_type=CallType(row["call_type"]),
        sectors=json.loads(row["sectors_json"]),
        target_audience=json.loads(row["target_audience_json"]),
        min_amount=row["min_amount"],
        max_amount=row["max_amount"],
        co_financing=row["co_financing"],
        de_minimis=bool(row["de_minimis"]),
        open_date=_dt(row["open_date"]),
        deadline=_dt(row["deadline"]),
        application_url=row["application_url"],
        contact_email=row["contact_email"],
        contact_phone=row["contact_phone"],
        is_active=bool(row["is_active"]),
        embedding=unpack(row["embedding"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
        scraped_at=_dt(row["scraped_at"]),
    )


def row_to_knowledge(row: sqlite3.Row) -> KnowledgeEntry:
    return KnowledgeEntry(
        id=row["id"],
        title=row["title"],
        content=row["content"],
        category=row["category"],
        embedding=unpack(row["embedding"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


class Database:
    """
    SQLite connection wrapper.

    Usage:
        db = Database("data/funding.db")
        with db.get_connection() as conn:
            conn.execute("SELECT * FROM funding_calls")
    """

    def __init__(self, path: str = "data/funding.db"):
        self.path = path
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.debug("database_initialized", path=self.path)

    def _init_db(self) -> None:
        with self.get_connection() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Connection inside one IMMEDIATE transaction.

        Commits on success, rolls back and raises StoreError on failure.
        """
        conn = sqlite3.connect(self.path, isolation_level=None)
        conn.row_factory = sqlite3.Row

        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error("database_error", error=str(e))
            raise StoreError(str(e)) from e
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


class SqliteCallStore(CallStore):
    """File-backed store; one short-lived connection per operation."""

    def __init__(self, path: str = "data/funding.db"):
        self.db = Database(path)

    async def _run(self, func, *args):
        return await asyncio.to_thread(func, *args)

    # Funding calls

    def _get_by_url(self, conn: sqlite3.Connection, url: str) -> Optional[FundingCall]:
        row = conn.execute("SELECT * FROM funding_calls WHERE url = ?", (url,)).fetchone()
        return row_to_call(row) if row else None

    def _write_call(self, conn: sqlite3.Connection, call: FundingCall) -> None:
        row = call_to_row(call)
        placeholders = ", ".join(f":{c}" for c in CALL_COLUMNS)
        updates = ", ".join(f"{c}=excluded.{c}" for c in CALL_COLUMNS if c not in ("id", "created_at"))
        conn.execute(
            f"""
            INSERT INTO funding_calls ({", ".join(CALL_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET {updates}
            """,
            row,
        )

    def _upsert_by_url(self, scraped: ScrapedCall, embedding: Optional[list[float]]) -> UpsertResult:
        now = self.now()
        with self.db.get_connection() as conn:
            existing = self._get_by_url(conn, scraped.url)
            if existing is None:
                call = new_call(scraped, embedding, now)
                created = True
            else:
                call = apply_scrape(existing, scraped, embedding, now)
                created = False
            self._write_call(conn, call)

        logger.debug("call_upserted", url=scraped.url, created=created)
        return UpsertResult(call=call, created=created)

    async def upsert_by_url(
        self,
        scraped: ScrapedCall,
        embedding: Optional[list[float]] = None,
    ) -> UpsertResult:
        return await self._run(self._upsert_by_url, scraped, embedding)

    def _get_by_url_sync(self, url: str) -> Optional[FundingCall]:
        with self.db.get_connection() as conn:
            return self._get_by_url(conn, url)

    async def get_by_url(self, url: str) -> Optional[FundingCall]:
        return await self._run(self._get_by_url_sync, url)

    def _get(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        with self.db.get_connection() as conn:
            row = conn.execute(
                f"SELECT * FROM {TABLES[kind]} WHERE id = ?", (record_id,)
            ).fetchone()
        if row is None:
            return None
        return row_to_call(row) if kind == RecordKind.FUNDING_CALL else row_to_knowledge(row)

    async def get(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        return await self._run(self._get, kind, record_id)

    def _set_active(self, url: str, active: bool) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "UPDATE funding_calls SET is_active = ?, updated_at = ? WHERE url = ?",
                (1 if active else 0, _iso(self.now()), url),
            )
            return cursor.rowcount > 0

    async def set_active(self, url: str, active: bool) -> bool:
        return await self._run(self._set_active, url, active)

    # Knowledge base

    def _upsert_knowledge(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        now = self.now()
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT created_at FROM knowledge_base WHERE id = ?", (entry.id,)
            ).fetchone()
            created_at = _dt(row["created_at"]) if row else entry.created_at
            conn.execute(
                """
                INSERT INTO knowledge_base (id, title, content, category, embedding, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    content=excluded.content,
                    category=excluded.category,
                    embedding=excluded.embedding,
                    updated_at=excluded.updated_at
                """,
                (
                    entry.id, entry.title, entry.content, entry.category,
                    pack(entry.embedding), _iso(created_at), _iso(now),
                ),
            )

        return KnowledgeEntry(
            id=entry.id,
            title=entry.title,
            content=entry.content,
            category=entry.category,
            embedding=unpack(pack(entry.embedding)),
            created_at=_dt(_iso(created_at)),
            updated_at=_dt(_iso(now)),
        )

    async def upsert_knowledge(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        return await self._run(self._upsert_knowledge, entry)

    # Embeddings

    def _rows(self, kind: RecordKind, where: str = "", params: tuple = ()) -> list[Record]:
        with self.db.get_connection() as conn:
            rows = conn.execute(f"SELECT * FROM {TABLES[kind]} {where}", params).fetchall()
        convert = row_to_call if kind == RecordKind.FUNDING_CALL else row_to_knowledge
        return [convert(row) for row in rows]

    async def find_many_without_embedding(self, kind: RecordKind) -> list[Record]:
        return await self._run(self._rows, kind, "WHERE embedding IS NULL", ())

    def _set_embedding(self, kind: RecordKind, record_id: str, vector: list[float]) -> None:
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE {TABLES[kind]} SET embedding = ? WHERE id = ?",
                (pack(vector), record_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"No {kind.value} with id {record_id}")

    async def set_embedding(self, kind: RecordKind, record_id: str, vector: list[float]) -> None:
        await self._run(self._set_embedding, kind, record_id, vector)

    # Queries

    def _candidates(self, kind: RecordKind, filters: Optional[CallFilters], embedded: bool) -> list[Record]:
        filters = filters or CallFilters()
        clauses = []
        params: list = []

        if embedded:
            clauses.append("embedding IS NOT NULL")

        if kind == RecordKind.FUNDING_CALL:
            clauses += ["is_active = 1", "deadline > ?"]
            params.append(_iso(filters.cutoff()))
            if filters.source:
                clauses.append("source = ?")
                params.append(filters.source.value)
            if filters.call_type:
                clauses.append("call_type = ?")
                params.append(filters.call_type.value)
            order = "ORDER BY deadline ASC"
        else:
            if filters.category:
                clauses.append("category = ?")
                params.append(filters.category)
            order = "ORDER BY created_at ASC"

        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        records = self._rows(kind, f"{where} {order}", tuple(params))

        # Sector membership lives in JSON; final check in Python
        if kind == RecordKind.FUNDING_CALL:
            return [r for r in records if filters.matches_call(r)]
        return records

    def _similarity_search(self, kind, vector, limit, filters) -> list[Record]:
        candidates = self._candidates(kind, filters, embedded=True)
        return rank_by_distance(vector, [(r, r.embedding) for r in candidates], limit)

    async def similarity_search(
        self,
        kind: RecordKind,
        vector: list[float],
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        return await self._run(self._similarity_search, kind, vector, limit, filters)

    def _text_search(self, kind, query, limit, filters) -> list[Record]:
        candidates = self._candidates(kind, filters, embedded=False)
        return [r for r in candidates if text_matches(r, query)][:limit]

    async def text_search(
        self,
        kind: RecordKind,
        query: str,
        limit: int,
        filters: Optional[CallFilters] = None,
    ) -> list[Record]:
        return await self._run(self._text_search, kind, query, limit, filters)

    def _count(self, kind: RecordKind, with_embedding: Optional[bool]) -> int:
        where = ""
        if with_embedding is True:
            where = "WHERE embedding IS NOT NULL"
        elif with_embedding is False:
            where = "WHERE embedding IS NULL"
        with self.db.get_connection() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS n FROM {TABLES[kind]} {where}").fetchone()
        return row["n"]

    async def count(self, kind: RecordKind, with_embedding: Optional[bool] = None) -> int:
        return await self._run(self._count, kind, with_embedding)

    def _list_calls(self, filters, limit, offset) -> list[FundingCall]:
        calls = self._candidates(RecordKind.FUNDING_CALL, filters, embedded=False)
        return calls[offset:offset + limit]

    async def list_calls(
        self,
        filters: Optional[CallFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FundingCall]:
        return await self._run(self._list_calls, filters, limit, offset)
