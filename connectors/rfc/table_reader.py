"""Table reader over RFC.

Reads arbitrary tables through an RFC_READ_TABLE-style function module,
slicing the fixed-width ``DATA`` rows at the offsets reported in ``FIELDS``
and coercing values by ABAP type.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from core.errors import ForensicsError, TableReadError

logger = logging.getLogger(__name__)

TABLE_READ_FMS = (
    "/SAPDS/RFC_READ_TABLE",
    "BBP_RFC_READ_TABLE",
    "RFC_READ_TABLE",
)

WHERE_LINE_LENGTH = 72
DEFAULT_CHUNK_SIZE = 10000

# destination -> resolved function module, kept for the process lifetime
_resolved_fms: Dict[str, str] = {}

_TABLE_NAME_RE = re.compile(r"[^A-Z0-9_/]")


def clear_fm_cache() -> None:
    _resolved_fms.clear()


def sanitize_table_name(name: str) -> str:
    cleaned = _TABLE_NAME_RE.sub("", (name or "").upper())
    if not cleaned:
        raise TableReadError(f"Invalid table name: {name!r}", details={"table": name})
    return cleaned


def sanitize_literal(value: str) -> str:
    """Strip characters that could break out of a WHERE literal."""
    return re.sub(r"[';\\]", "", str(value))


def split_where(where: str, width: int = WHERE_LINE_LENGTH) -> List[str]:
    """Split a WHERE clause into option lines of at most ``width`` chars."""
    lines = []
    remaining = where.strip()
    while remaining:
        if len(remaining) <= width:
            lines.append(remaining)
            break
        split_at = remaining.rfind(" ", 0, width + 1)
        if split_at <= 0:
            split_at = width
        lines.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()
    return lines


def _to_number(text: str, kind):
    if not text:
        return None
    if text.endswith("-"):
        text = "-" + text[:-1]
    try:
        return kind(text) if kind is float else int(float(text))
    except ValueError:
        return text


def coerce_value(raw: str, abap_type: str) -> Any:
    """Coerce a trimmed field value by ABAP type code."""
    value = raw.strip()
    if abap_type in ("I", "b", "s", "8"):
        return _to_number(value, int)
    if abap_type in ("P", "F"):
        return _to_number(value, float)
    if abap_type == "D":
        if not value or value == "00000000" or len(value) != 8 or not value.isdigit():
            return None
        return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"
    if abap_type == "T":
        if len(value) == 6 and value.isdigit():
            return f"{value[0:2]}:{value[2:4]}:{value[4:6]}"
        return value or None
    return value


@dataclass
class FieldInfo:
    name: str
    offset: int
    length: int
    type: str = "C"


@dataclass
class TableData:
    """Rows read from one table."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)
    total_rows: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TableChunk:
    rows: List[Dict[str, Any]]
    chunk: int
    offset: int
    fields: List[str]


def parse_read_table_result(result: Dict[str, Any]) -> TableData:
    infos = [
        FieldInfo(
            name=(f.get("FIELDNAME") or "").strip(),
            offset=int(f.get("OFFSET") or 0),
            length=int(f.get("LENGTH") or 0),
            type=(f.get("TYPE") or "C").strip(),
        )
        for f in result.get("FIELDS") or []
    ]
    rows = []
    for raw in result.get("DATA") or []:
        wa = raw.get("WA", "") if isinstance(raw, dict) else str(raw)
        rows.append({
            info.name: coerce_value(wa[info.offset:info.offset + info.length], info.type)
            for info in infos
        })
    return TableData(rows=rows, fields=[i.name for i in infos], total_rows=len(rows))


class TableReader:
    """Read tables through a pool of RFC clients.

    Usage:
        reader = TableReader(rfc_pool)
        data = await reader.read_table("T001", fields=["BUKRS", "BUTXT"])
        async for chunk in reader.stream_table("BKPF", chunk_size=5000):
            ...
    """

    def __init__(self, pool, chunk_size: int = DEFAULT_CHUNK_SIZE, preferred_fm: Optional[str] = None):
        self.pool = pool
        self.chunk_size = chunk_size
        self.preferred_fm = preferred_fm

    async def resolve_fm(self, client) -> str:
        if self.preferred_fm:
            return self.preferred_fm
        destination = getattr(self.pool, "destination", "default")
        cached = _resolved_fms.get(destination)
        if cached:
            return cached

        for fm in TABLE_READ_FMS:
            try:
                await client.call(fm, QUERY_TABLE="T000", DELIMITER="|", ROWCOUNT=1, OPTIONS=[])
            except ForensicsError as e:
                logger.debug(f"Table read FM {fm} unavailable: {e}")
                continue
            _resolved_fms[destination] = fm
            logger.info(f"Using table read FM {fm} for {destination}")
            return fm

        fallback = TABLE_READ_FMS[-1]
        _resolved_fms[destination] = fallback
        logger.warning(f"No table read FM answered on {destination}, defaulting to {fallback}")
        return fallback

    def _build_params(self, table: str, fields, where, max_rows: int, row_skips: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "QUERY_TABLE": table,
            "DELIMITER": "",
            "ROWCOUNT": max_rows or 0,
            "ROWSKIPS": row_skips or 0,
            "OPTIONS": [{"TEXT": line} for line in split_where(where)] if where else [],
        }
        if fields:
            params["FIELDS"] = [{"FIELDNAME": f} for f in fields]
        return params

    async def read_table(
        self,
        name: str,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
        max_rows: int = 0,
        row_skips: int = 0,
    ) -> TableData:
        """Read up to ``max_rows`` rows (0 = all).

        Raises:
            TableReadError: the read failed for any reason
        """
        table = sanitize_table_name(name)
        client = await self.pool.acquire()
        try:
            fm = await self.resolve_fm(client)
            result = await client.call(fm, **self._build_params(table, fields, where, max_rows, row_skips))
            data = parse_read_table_result(result)
            data.metadata = {"table": table, "functionModule": fm}
            return data
        except TableReadError:
            raise
        except Exception as e:
            details = {"table": table, "cause": str(e)}
            if isinstance(e, ForensicsError):
                details["causeCode"] = e.code
                if e.details.get("circuitBreaker"):
                    details["circuitBreaker"] = True
            raise TableReadError(f"Failed to read table {table}: {e}", details=details, cause=e)
        finally:
            await self.pool.release(client)

    async def stream_table(
        self,
        name: str,
        chunk_size: Optional[int] = None,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
    ) -> AsyncIterator[TableChunk]:
        """Yield chunks until a short chunk signals the end of the table."""
        size = chunk_size or self.chunk_size
        offset = 0
        chunk = 0
        while True:
            data = await self.read_table(name, fields=fields, where=where, max_rows=size, row_skips=offset)
            if data.rows:
                yield TableChunk(rows=data.rows, chunk=chunk, offset=offset, fields=data.fields)
                offset += len(data.rows)
                chunk += 1
            if len(data.rows) < size:
                break

    async def get_table_metadata(self, name: str) -> Dict[str, Any]:
        table = sanitize_table_name(name)
        data = await self.read_table(
            "DD03L",
            fields=["FIELDNAME", "DATATYPE", "LENG", "DECIMALS", "ROLLNAME", "KEYFLAG"],
            where=f"TABNAME = '{sanitize_literal(table)}'",
        )
        fields = []
        for row in data.rows:
            field_name = (row.get("FIELDNAME") or "").strip()
            if not field_name or field_name.startswith("."):
                continue
            fields.append({
                "name": field_name,
                "type": (row.get("DATATYPE") or "").strip(),
                "length": int(row.get("LENG") or 0),
                "decimals": int(row.get("DECIMALS") or 0),
                "rollname": (row.get("ROLLNAME") or "").strip(),
                "key": (row.get("KEYFLAG") or "").strip() == "X",
            })
        return {"table": table, "fields": fields}
