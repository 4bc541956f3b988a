"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through the
repositories, which handle translation between domain models and rows.
"""

import base64
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Optional, Protocol

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def close(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "CLIPSHARE"
    schema: str = "PUBLIC"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


def _load_private_key(pem_bytes: bytes) -> bytes:
    """
    Convert a PEM private key to the DER bytes snowflake-connector expects.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        pem_bytes,
        password=None,
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _read_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _load_private_key(key_file.read())
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    return None


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        'client_session_keep_alive': True,
    }

    private_key = _read_private_key(config)
    if private_key:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = private_key
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or a private key must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

_SELECT_RE = re.compile(
    r"^select (?P<columns>.+?) from (?P<table>\w+)"
    r"(?: where (?P<where>.+?))?"
    r"(?: order by (?P<order>\w+)(?P<direction> desc| asc)?)?"
    r"(?: limit (?P<limit>\d+))?$"
)
_INSERT_RE = re.compile(
    r"^insert into (?P<table>\w+) \((?P<columns>.+?)\) values \((?P<values>.+?)\)$"
)
_UPDATE_RE = re.compile(r"^update (?P<table>\w+) set (?P<assignments>.+?) where (?P<where>.+)$")
_DELETE_RE = re.compile(r"^delete from (?P<table>\w+) where (?P<where>.+)$")
_MERGE_RE = re.compile(
    r"^merge into (?P<table>\w+) as target"
    r" using \(select %s as (?P<source_key>\w+)\) as source"
    r" on target\.(?P<key>\w+) = source\.\w+"
    r" when not matched then insert \((?P<columns>.+?)\) values \((?P<values>.+?)\)$"
)
_ASSIGNMENT_RE = re.compile(r"^(\w+) = %s$")


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Understands the small SQL dialect the repositories use: equality
    predicates joined by AND, positional %s parameters, single-column
    ORDER BY, COUNT(*), and MERGE ... WHEN NOT MATCHED THEN INSERT.
    Anything else raises so a repository change can't silently pass.
    """

    def __init__(self, storage: dict[str, list[dict[str, Any]]]) -> None:
        self._storage = storage
        self._results: list[tuple] = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        statement = " ".join(query.split()).lower()
        values = list(params or ())

        logger.debug(
            "Mock cursor execute",
            extra={"query": statement[:100], "params": params}
        )

        self._results = []
        self._rowcount = 0

        if statement.startswith("create "):
            return self

        for pattern, handler in (
            (_SELECT_RE, self._handle_select),
            (_INSERT_RE, self._handle_insert),
            (_UPDATE_RE, self._handle_update),
            (_DELETE_RE, self._handle_delete),
            (_MERGE_RE, self._handle_merge),
        ):
            match = pattern.match(statement)
            if match:
                handler(match, values)
                return self

        raise ValueError(f"Mock cursor cannot execute: {statement[:80]}")

    def _table(self, name: str) -> list[dict[str, Any]]:
        return self._storage.setdefault(name, [])

    def _filter(self, rows: list[dict[str, Any]], where: Optional[str], values: list) -> list[dict]:
        if not where:
            return list(rows)

        conditions = []
        for clause in where.split(" and "):
            match = _ASSIGNMENT_RE.match(clause.strip())
            if not match:
                raise ValueError(f"Unsupported predicate: {clause}")
            conditions.append((match.group(1), values.pop(0)))

        return [
            row for row in rows
            if all(row.get(column) == value for column, value in conditions)
        ]

    def _handle_select(self, match: re.Match, values: list) -> None:
        rows = self._filter(self._table(match.group("table")), match.group("where"), values)

        if match.group("order"):
            column = match.group("order")
            rows.sort(
                key=lambda row: row.get(column),
                reverse=(match.group("direction") or "").strip() == "desc",
            )

        if match.group("limit"):
            rows = rows[:int(match.group("limit"))]

        columns = [c.strip() for c in match.group("columns").split(",")]
        if columns == ["count(*)"]:
            self._results = [(len(rows),)]
        else:
            self._results = [tuple(row.get(c) for c in columns) for row in rows]
        self._rowcount = len(self._results)

    def _handle_insert(self, match: re.Match, values: list) -> None:
        columns = [c.strip() for c in match.group("columns").split(",")]
        self._table(match.group("table")).append(dict(zip(columns, values)))
        self._rowcount = 1

    def _handle_update(self, match: re.Match, values: list) -> None:
        assignments = []
        for clause in match.group("assignments").split(","):
            assignment = _ASSIGNMENT_RE.match(clause.strip())
            if not assignment:
                raise ValueError(f"Unsupported assignment: {clause}")
            assignments.append((assignment.group(1), values.pop(0)))

        rows = self._filter(self._table(match.group("table")), match.group("where"), values)
        for row in rows:
            row.update(assignments)
        self._rowcount = len(rows)

    def _handle_delete(self, match: re.Match, values: list) -> None:
        table = self._table(match.group("table"))
        doomed = self._filter(table, match.group("where"), values)
        table[:] = [row for row in table if not any(row is d for d in doomed)]
        self._rowcount = len(doomed)

    def _handle_merge(self, match: re.Match, values: list) -> None:
        key_value = values.pop(0)
        key = match.group("key")
        table = self._table(match.group("table"))

        if any(row.get(key) == key_value for row in table):
            return

        columns = [c.strip() for c in match.group("columns").split(",")]
        table.append(dict(zip(columns, values)))
        self._rowcount = 1

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores rows in memory as {table_name: [row_dict, ...]}.
    Not suitable for production, but fine for local development,
    unit tests and CI.
    """

    def __init__(self) -> None:
        self._storage: dict[str, list[dict[str, Any]]] = {
            'user_profiles': [],
            'videos': [],
        }

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _rows(self, table: str) -> list[dict[str, Any]]:
        """Get raw rows from mock storage (for test assertions)."""
        return self._storage.setdefault(table, [])

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        for table in self._storage.values():
            table.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        conn = MockSnowflakeConnection()
        try:
            yield conn
        finally:
            conn.close()
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
