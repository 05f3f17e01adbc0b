"""RFC connector: client, pool, table reader and function caller."""

from connectors.rfc.client import RfcClient, normalize_params, redact
from connectors.rfc.function_caller import FunctionCaller, FunctionResult, check_return
from connectors.rfc.pool import RfcPool
from connectors.rfc.table_reader import (
    TABLE_READ_FMS,
    TableChunk,
    TableData,
    TableReader,
    clear_fm_cache,
)

__all__ = [
    "RfcClient",
    "normalize_params",
    "redact",
    "RfcPool",
    "FunctionCaller",
    "FunctionResult",
    "check_return",
    "TableReader",
    "TableData",
    "TableChunk",
    "TABLE_READ_FMS",
    "clear_fm_cache",
]
