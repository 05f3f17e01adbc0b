"""Generic function-module caller for BAPIs and other non-table calls."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.errors import ForensicsError, FunctionCallError

logger = logging.getLogger(__name__)

RETURN_PARAMS = ("RETURN", "BAPIRETURN", "BAPIRET2")
ERROR_TYPES = ("E", "A", "X")
INFO_TYPES = ("S", "W", "I")


@dataclass
class FunctionResult:
    """Exports and tables of a call plus its non-fatal return messages."""
    data: Dict[str, Any] = field(default_factory=dict)
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


def _return_messages(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    for param in RETURN_PARAMS:
        value = result.get(param)
        if not value:
            continue
        messages.extend(value if isinstance(value, list) else [value])
    return [m for m in messages if isinstance(m, dict) and (m.get("TYPE") or "").strip()]


def _format_message(message: Dict[str, Any]) -> str:
    return f"{message.get('ID', '')}-{message.get('NUMBER', '')}: {(message.get('MESSAGE') or '').strip()}"


def check_return(function_name: str, result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Raise on E/A/X messages; return S/W/I messages.

    Raises:
        FunctionCallError: an error message was returned
    """
    messages = _return_messages(result)
    errors = [m for m in messages if m.get("TYPE", "").strip() in ERROR_TYPES]
    if errors:
        text = "; ".join(_format_message(m) for m in errors)
        raise FunctionCallError(
            f"{function_name} returned errors: {text}",
            details={"functionModule": function_name, "messages": errors},
        )
    return [m for m in messages if m.get("TYPE", "").strip() in INFO_TYPES]


def _param_list(rows: Optional[List[Dict[str, Any]]], with_optional: bool = False) -> List[Dict[str, Any]]:
    params = []
    for row in rows or []:
        entry = {
            "name": (row.get("PARAMETER") or "").strip(),
            "type": (row.get("TYP") or row.get("DBSTRUCT") or "").strip(),
        }
        if with_optional:
            entry["optional"] = (row.get("OPTIONAL") or "").strip() == "X"
            entry["default"] = (row.get("DEFAULT") or "").strip()
        params.append(entry)
    return params


class FunctionCaller:
    """Call function modules through an RFC pool.

    Usage:
        caller = FunctionCaller(rfc_pool)
        result = await caller.call("BAPI_COMPANYCODE_GETLIST")
        for row in result["COMPANYCODE_LIST"]:
            ...
    """

    def __init__(self, pool):
        self.pool = pool

    async def call(
        self,
        function_name: str,
        imports: Optional[Dict[str, Any]] = None,
        tables: Optional[Dict[str, Any]] = None,
    ) -> FunctionResult:
        params = dict(imports or {})
        params.update(tables or {})
        client = await self.pool.acquire()
        try:
            result = await client.call(function_name, **params)
        finally:
            await self.pool.release(client)
        return FunctionResult(data=result, messages=check_return(function_name, result))

    async def call_with_commit(self, function_name: str, **params) -> FunctionResult:
        """Call then commit on the same session; roll back on failure."""
        client = await self.pool.acquire()
        try:
            try:
                result = await client.call(function_name, **params)
                messages = check_return(function_name, result)
                await client.call("BAPI_TRANSACTION_COMMIT", WAIT="X")
            except ForensicsError:
                await self._rollback(client, function_name)
                raise
            except Exception as e:
                await self._rollback(client, function_name)
                raise FunctionCallError(
                    f"Call to {function_name} with commit failed: {e}",
                    details={"functionModule": function_name, "cause": str(e)},
                    cause=e,
                )
        finally:
            await self.pool.release(client)
        return FunctionResult(data=result, messages=messages)

    async def _rollback(self, client, function_name: str) -> None:
        try:
            await client.call("BAPI_TRANSACTION_ROLLBACK")
        except Exception as e:
            logger.warning(f"Rollback after {function_name} failed: {e}")

    async def get_interface(self, function_name: str) -> Dict[str, Any]:
        try:
            result = await self.call("RPY_FUNCTIONMODULE_READ", {"FUNCTIONNAME": function_name})
        except ForensicsError as e:
            raise FunctionCallError(
                f"Failed to read interface for {function_name}: {e}",
                details={"functionModule": function_name, "cause": str(e)},
                cause=e,
            )
        return {
            "function": function_name,
            "imports": _param_list(result.get("IMPORT_PARAMETER"), with_optional=True),
            "exports": _param_list(result.get("EXPORT_PARAMETER")),
            "changing": _param_list(result.get("CHANGING_PARAMETER"), with_optional=True),
            "tables": _param_list(result.get("TABLES_PARAMETER"), with_optional=True),
        }
