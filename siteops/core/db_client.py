"""SQLite database client wrapper with CRUD and conditional-write operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from siteops.core.config import settings


logger = logging.getLogger(__name__)

SqlParam = str | int | float | bool | None


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _validate_column_name(column: str) -> None:
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", column):
        msg = f"Invalid column name: {column}"
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in SQL queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    # Foreign keys that do not follow the *_id naming
    fk_fields = {
        "id",
        "assigned_to",
        "claimed_by",
        "completed_by",
        "uploaded_by",
        "created_by",
    }

    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key in fk_fields or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_sql_value(value: Any) -> Any:
    """Convert a Python value into something sqlite3 can bind."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> SqlParam:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return value.replace("%", "\\%").replace("_", "\\_")

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).lstrip("-").isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, list[SqlParam]]:
    """Parse a single comparison expression into a SQL condition and parameters.

    Supports quoted values (`field = "value"`) and null checks (`field = null`, `field != null`).
    """
    null_match = re.match(r"^(\w+)\s*(=|!=)\s*null$", comparison.strip(), re.IGNORECASE)
    if null_match:
        field = null_match.group(1)
        is_not = null_match.group(2) == "!="
        return f"{field} IS {'NOT ' if is_not else ''}NULL", []

    match = re.match(
        r"""(\w+)\s*(=|!=|>|<|>=|<=|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)
    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", [f"%{value}%"]

    return f"{field} {sql_op} ?", [value]


def _parse_or_group(or_group: str) -> tuple[str, list[SqlParam]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params: list[SqlParam] = []

    for part in or_parts:
        cond, values = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.extend(values)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[SqlParam]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params: list[SqlParam] = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
        else:
            cond, cond_params = _parse_single_comparison(part)
        conditions.append(cond)
        params.extend(cond_params)

    return " AND ".join(conditions), params


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_connect_locks: dict[tuple[int, int], asyncio.Lock] = {}
_write_locks: dict[tuple[int, int, str], asyncio.Lock] = {}

# Set while the current task holds an open transaction on its connection
_in_transaction: ContextVar[bool] = ContextVar("siteops_db_in_transaction", default=False)


def _cache_key(db_path: str | None = None) -> tuple[int, int, str]:
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    return (thread_id, loop_id, str(get_db_path(db_path)))


def _connect_lock() -> asyncio.Lock:
    key = (threading.get_ident(), id(asyncio.get_running_loop()))
    return _connect_locks.setdefault(key, asyncio.Lock())


def _write_lock(db_path: str | None = None) -> asyncio.Lock:
    return _write_locks.setdefault(_cache_key(db_path), asyncio.Lock())


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)
    thread_id, loop_id, path_str = cache_key

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _connect_lock():
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path = Path(path_str)
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA busy_timeout = 5000")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": path_str, "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)
    thread_id, loop_id, path_str = cache_key

    if cache_key not in _db_connections:
        return

    try:
        async with _connect_lock():
            conn = _db_connections.pop(cache_key, None)
            _write_locks.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": path_str},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


@asynccontextmanager
async def _use_connection(*, write: bool) -> AsyncIterator[aiosqlite.Connection]:
    """Serialize access to the shared connection.

    Inside `transaction()` the caller already holds the lock and the enclosing
    scope commits. Outside it, writes commit on success and roll back on error.
    """
    conn = await get_connection()
    if _in_transaction.get():
        yield conn
        return

    async with _write_lock():
        try:
            yield conn
        except BaseException:
            if write:
                await conn.rollback()
            raise
        if write:
            await conn.commit()


@asynccontextmanager
async def transaction() -> AsyncIterator[None]:
    """Run the enclosed db_client calls atomically.

    Opens `BEGIN IMMEDIATE`, commits when the block exits normally and rolls
    back on any exception. Nested scopes join the outermost one.
    """
    if _in_transaction.get():
        yield
        return

    conn = await get_connection()
    async with _write_lock():
        await conn.execute("BEGIN IMMEDIATE")
        token = _in_transaction.set(True)
        try:
            yield
        except BaseException:
            await conn.rollback()
            logger.info("Rolled back transaction")
            raise
        else:
            await conn.commit()
        finally:
            _in_transaction.reset(token)


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from siteops.core import schema

    await schema.init_db(db_path=db_path)


async def _fetch_by_id(conn: aiosqlite.Connection, collection: str, record_id: str) -> dict[str, Any] | None:
    query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
    cursor = await conn.execute(query, (int(record_id),))
    row = await cursor.fetchone()
    if row is None:
        return None
    columns = [description[0] for description in cursor.description]
    return _convert_record_ids(dict(zip(columns, row, strict=True)))


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)

        columns = list(data.keys())
        for column in columns:
            _validate_column_name(column)
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_sql_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        async with _use_connection(write=True) as conn:
            cursor = await conn.execute(query, values)
            record_id = cursor.lastrowid
            result = await _fetch_by_id(conn, collection, str(record_id))

        if result is None:
            msg = f"Record vanished after insert in {collection}: {record_id}"
            raise RuntimeError(msg)

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except Exception as e:
        if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            logger.error("Table not found", extra={"collection": collection})
            raise RuntimeError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise RuntimeError(msg) from e


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising KeyError if not found."""
    try:
        _validate_collection_name(collection)
        async with _use_connection(write=False) as conn:
            record = await _fetch_by_id(conn, collection, record_id)

        if record is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return record
    except KeyError:
        raise
    except ValueError as e:
        # Non-numeric ids can never match an INTEGER primary key
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg) from e
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise RuntimeError(msg) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        payload = {**data, "updated": _now_iso()}
        for column in payload:
            _validate_column_name(column)

        set_clause = ", ".join(f"{key} = ?" for key in payload)
        values = [_to_sql_value(val) for val in payload.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        async with _use_connection(write=True) as conn:
            await conn.execute(query, values)
            record = await _fetch_by_id(conn, collection, record_id)

        if record is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return record
    except KeyError:
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise RuntimeError(msg) from e


async def update_record_if(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any] | None = None,
    increments: dict[str, int] | None = None,
    filter_query: str = "",
) -> dict[str, Any] | None:
    """Apply an update only if the record still matches `filter_query`.

    Issues a single `UPDATE ... WHERE id = ? AND <filter>` statement. Returns the
    updated record, or None when no row matched (the expected state was gone).

    Args:
        collection: Table name
        record_id: Primary key of the record
        data: Column values to set
        increments: Columns to increase by the given amounts
        filter_query: Expected-state condition in filter syntax
    """
    if not data and not increments:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        assignments: list[str] = []
        values: list[Any] = []

        for key, val in (data or {}).items():
            _validate_column_name(key)
            assignments.append(f"{key} = ?")
            values.append(_to_sql_value(val))
        for key, amount in (increments or {}).items():
            _validate_column_name(key)
            assignments.append(f"{key} = {key} + ?")
            values.append(amount)
        assignments.append("updated = ?")
        values.append(_now_iso())

        where_clause, where_params = parse_filter(filter_query)
        query = f"UPDATE {collection} SET {', '.join(assignments)} WHERE id = ?"  # noqa: S608 - collection is validated
        values.append(int(record_id))
        if where_clause:
            query += f" AND {where_clause}"
            values.extend(where_params)

        async with _use_connection(write=True) as conn:
            cursor = await conn.execute(query, values)
            if cursor.rowcount == 0:
                logger.info(
                    "Conditional update matched no rows",
                    extra={"collection": collection, "record_id": record_id, "filter_query": filter_query},
                )
                return None
            record = await _fetch_by_id(conn, collection, record_id)

        logger.info("Conditionally updated record", extra={"collection": collection, "record_id": record_id})
        return record
    except Exception as e:
        logger.error(
            "update_record_if_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
        )
        msg = f"Failed to update record in {collection}: {e}"
        raise RuntimeError(msg) from e


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising KeyError if not found."""
    try:
        _validate_collection_name(collection)

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        async with _use_connection(write=True) as conn:
            cursor = await conn.execute(query, (int(record_id),))
            deleted = cursor.rowcount

        if deleted == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except KeyError:
        raise
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise RuntimeError(msg) from e


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    try:
        _validate_collection_name(collection)

        where_clause = ""
        params: list[SqlParam] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        # Only allow: column_name [ASC|DESC]
        safe_sort = "id ASC"
        if sort:
            sort_pattern = re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE)
            if sort_pattern:
                safe_sort = sort.strip()
            else:
                logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        async with _use_connection(write=False) as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            columns = [description[0] for description in cursor.description]

        records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise RuntimeError(msg) from e


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    try:
        _validate_collection_name(collection)

        where_clause, params = parse_filter(filter_query)

        if where_clause:
            query = f"SELECT * FROM {collection} WHERE {where_clause} ORDER BY id ASC LIMIT 1"  # noqa: S608 - collection is validated
        else:
            query = f"SELECT * FROM {collection} ORDER BY id ASC LIMIT 1"  # noqa: S608 - collection is validated
            params = []

        async with _use_connection(write=False) as conn:
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            columns = [description[0] for description in cursor.description] if row is not None else []

        if row is None:
            return None

        logger.debug("Retrieved first record", extra={"collection": collection})
        return _convert_record_ids(dict(zip(columns, row, strict=True)))
    except Exception as e:
        logger.error(
            "get_first_record_failed", extra={"collection": collection, "filter_query": filter_query, "error": str(e)}
        )
        msg = f"Failed to get first record from {collection}: {e}"
        raise RuntimeError(msg) from e
