"""Read-only SQL access to Infor ERP databases.

Used to profile LN, M3, CSI and Lawson databases directly: table lists,
row counts, column metadata and samples. Any statement that is not a read
is rejected before it reaches the driver.

The adapter takes a DB-API 2.0 connection factory (``pyodbc.connect``,
``oracledb.connect``...). Driver calls are blocking and run in a worker
thread.
"""

import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.errors import InforDbError
from core.resilience.executor import ResilientExecutor

logger = logging.getLogger(__name__)

WRITE_STATEMENT = re.compile(
    r"^\s*(INSERT|UPDATE|DELETE|DROP|ALTER|CREATE|TRUNCATE|MERGE|EXEC|EXECUTE|GRANT|REVOKE|CALL)\b",
    re.IGNORECASE,
)

TABLE_LIST_QUERIES = {
    "sqlserver": (
        "SELECT TABLE_SCHEMA + '.' + TABLE_NAME AS TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
        "WHERE TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_SCHEMA, TABLE_NAME"
    ),
    "oracle": (
        "SELECT OWNER || '.' || TABLE_NAME AS TABLE_NAME FROM ALL_TABLES "
        "WHERE OWNER NOT IN ('SYS','SYSTEM','OUTLN','DBSNMP') ORDER BY OWNER, TABLE_NAME"
    ),
    "db2": (
        "SELECT TABSCHEMA || '.' || TABNAME AS TABLE_NAME FROM SYSCAT.TABLES "
        "WHERE TYPE = 'T' AND TABSCHEMA NOT LIKE 'SYS%' ORDER BY TABSCHEMA, TABNAME"
    ),
    "postgres": (
        "SELECT table_schema || '.' || table_name AS TABLE_NAME FROM information_schema.tables "
        "WHERE table_type = 'BASE TABLE' AND table_schema NOT IN ('pg_catalog', 'information_schema') "
        "ORDER BY table_schema, table_name"
    ),
}

COLUMN_QUERIES = {
    "sqlserver": (
        "SELECT COLUMN_NAME, DATA_TYPE, CHARACTER_MAXIMUM_LENGTH AS MAX_LENGTH, IS_NULLABLE "
        "FROM INFORMATION_SCHEMA.COLUMNS WHERE TABLE_NAME = '{table}' ORDER BY ORDINAL_POSITION"
    ),
    "oracle": (
        "SELECT COLUMN_NAME, DATA_TYPE, DATA_LENGTH AS MAX_LENGTH, NULLABLE AS IS_NULLABLE "
        "FROM ALL_TAB_COLUMNS WHERE TABLE_NAME = '{table}' ORDER BY COLUMN_ID"
    ),
    "db2": (
        "SELECT COLNAME AS COLUMN_NAME, TYPENAME AS DATA_TYPE, LENGTH AS MAX_LENGTH, NULLS AS IS_NULLABLE "
        "FROM SYSCAT.COLUMNS WHERE TABNAME = '{table}' ORDER BY COLNO"
    ),
    "postgres": (
        "SELECT column_name AS COLUMN_NAME, data_type AS DATA_TYPE, "
        "character_maximum_length AS MAX_LENGTH, is_nullable AS IS_NULLABLE "
        "FROM information_schema.columns WHERE table_name = '{table}' ORDER BY ordinal_position"
    ),
}

_IDENTIFIER = re.compile(r"^[A-Za-z0-9_$#.]+$")


def _top_n(db_type: str, table: str, n: int) -> str:
    if db_type == "sqlserver":
        return f"SELECT TOP {n} * FROM {table}"
    if db_type == "oracle":
        return f"SELECT * FROM {table} WHERE ROWNUM <= {n}"
    if db_type == "db2":
        return f"SELECT * FROM {table} FETCH FIRST {n} ROWS ONLY"
    return f"SELECT * FROM {table} LIMIT {n}"


def build_select(
    db_type: str,
    table: str,
    fields: Optional[Sequence[str]] = None,
    where: Optional[str] = None,
    max_rows: int = 0,
    offset: int = 0,
    order_by: Optional[str] = None,
) -> str:
    """SELECT with ANSI OFFSET/FETCH paging (SQL Server 2012+, Oracle 12c+, DB2, Postgres)."""
    columns = ", ".join(check_identifier(f) for f in fields) if fields else "*"
    sql = f"SELECT {columns} FROM {check_identifier(table)}"
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    elif (max_rows or offset) and db_type == "sqlserver":
        sql += " ORDER BY (SELECT NULL)"
    if max_rows or offset:
        sql += f" OFFSET {int(offset)} ROWS"
    if max_rows:
        sql += f" FETCH NEXT {int(max_rows)} ROWS ONLY"
    return sql


def check_read_only(sql: str) -> None:
    if WRITE_STATEMENT.match(sql or ""):
        raise InforDbError(
            "Only SELECT statements are allowed (read-only mode)",
            details={"sql": sql[:100]},
        )


def check_identifier(name: str) -> str:
    if not name or not _IDENTIFIER.match(name):
        raise InforDbError(f"Invalid table name: {name!r}", details={"table": name})
    return name


class InforDbAdapter:
    """Read-only DB-API wrapper with retry and circuit breaking.

    Usage:
        db = InforDbAdapter(lambda: pyodbc.connect(dsn), db_type="sqlserver")
        await db.connect()
        profile = await db.profile_table("dbo.ttcibd001100")
    """

    def __init__(
        self,
        connection_factory: Callable[[], Any],
        db_type: str = "sqlserver",
        executor: Optional[ResilientExecutor] = None,
    ):
        self.db_type = (db_type or "sqlserver").lower()
        if self.db_type not in TABLE_LIST_QUERIES:
            raise InforDbError(f"Unsupported database type: {db_type}", details={"type": db_type})
        self._factory = connection_factory
        self._executor = executor or ResilientExecutor.for_db(f"infor-db:{self.db_type}")
        self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        try:
            self._conn = await asyncio.to_thread(self._factory)
        except Exception as e:
            raise InforDbError(f"Database connection failed: {e}", details={"type": self.db_type}, cause=e)
        logger.info(f"Connected to {self.db_type} database")

    async def disconnect(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            await asyncio.to_thread(conn.close)
        except Exception as e:
            logger.warning(f"Error closing {self.db_type} connection: {e}")

    def _run(self, sql: str, params: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params or ())
            columns = [d[0] for d in cursor.description or []]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Run a read statement.

        Returns:
            {rows, rowCount}

        Raises:
            InforDbError: write statement, not connected, or driver failure
        """
        check_read_only(sql)
        if self._conn is None:
            raise InforDbError("Database connection not established", details={"type": self.db_type})

        async def attempt():
            try:
                return await asyncio.to_thread(self._run, sql, params)
            except Exception as e:
                raise InforDbError(
                    f"SQL query failed: {e}",
                    details={"sql": sql[:200], "type": self.db_type, "cause": str(e)},
                    cause=e,
                )

        rows = await self._executor.execute(attempt)
        return {"rows": rows, "rowCount": len(rows)}

    async def select(
        self,
        table: str,
        fields: Optional[Sequence[str]] = None,
        where: Optional[str] = None,
        max_rows: int = 0,
        offset: int = 0,
        order_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.query(build_select(self.db_type, table, fields, where, max_rows, offset, order_by))

    async def list_tables(self) -> List[str]:
        result = await self.query(TABLE_LIST_QUERIES[self.db_type])
        return [row.get("TABLE_NAME") or row.get("table_name") for row in result["rows"]]

    async def get_row_count(self, table: str) -> int:
        result = await self.query(f"SELECT COUNT(*) AS cnt FROM {check_identifier(table)}")
        row = result["rows"][0] if result["rows"] else {}
        return int(row.get("cnt") or row.get("CNT") or 0)

    async def profile_table(self, table: str, sample_size: int = 5) -> Dict[str, Any]:
        """Row count, column metadata and a few sample rows.

        Column and sample lookups are best effort; the count is not.
        """
        table = check_identifier(table)
        row_count = await self.get_row_count(table)
        short_name = table.split(".")[-1]
        if self.db_type in ("oracle", "db2"):
            short_name = short_name.upper()

        columns: List[Dict[str, Any]] = []
        try:
            result = await self.query(COLUMN_QUERIES[self.db_type].format(table=short_name))
            for col in result["rows"]:
                nullable = str(col.get("IS_NULLABLE") or col.get("is_nullable") or "").upper()
                columns.append({
                    "name": col.get("COLUMN_NAME") or col.get("column_name"),
                    "type": col.get("DATA_TYPE") or col.get("data_type"),
                    "maxLength": col.get("MAX_LENGTH") or col.get("max_length"),
                    "nullable": nullable not in ("NO", "N"),
                })
        except InforDbError as e:
            logger.warning(f"Could not read column metadata for {table}: {e}")

        samples: List[Dict[str, Any]] = []
        try:
            samples = (await self.query(_top_n(self.db_type, table, sample_size)))["rows"]
        except InforDbError as e:
            logger.warning(f"Could not read sample rows for {table}: {e}")

        return {"table": table, "rowCount": row_count, "columns": columns, "sampleRows": samples}

    async def health_check(self) -> bool:
        probe = {"oracle": "SELECT 1 FROM DUAL", "db2": "SELECT 1 FROM SYSIBM.SYSDUMMY1"}.get(self.db_type, "SELECT 1")
        try:
            await self.query(probe)
            return True
        except Exception as e:
            logger.debug(f"Database health check failed: {e}")
            return False
