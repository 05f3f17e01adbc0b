"""RFC client.

Wraps a ``pyrfc.Connection`` with a per-call timeout, retry on transient
failures and a per-client circuit breaker. pyrfc needs the SAP NW RFC SDK
and is imported only when a live connection is opened; tests pass a
``connection_factory`` instead.

Usage:
    client = RfcClient({"ashost": "10.0.0.1", "sysnr": "0", "client": "100",
                        "user": "RFC_USER", "passwd": "..."})
    await client.open()
    result = await client.call("RFC_SYSTEM_INFO")
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from core.errors import CircuitBreakerOpenError, RfcError
from core.observability.metrics import record_protocol_call
from core.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

TRANSIENT_MARKERS = ("connection", "timeout", "reset", "broken pipe")

_SECRET_KEYS = ("passwd", "password", "x509cert", "snc_myname")

_PARAM_KEYS = (
    "ashost", "mshost", "msserv", "group", "r3name", "gwhost", "gwserv",
    "saprouter", "user", "passwd", "lang", "trace",
    "snc_qop", "snc_myname", "snc_partnername", "snc_lib",
)


def _load_pyrfc():
    try:
        import pyrfc
    except ImportError as e:
        raise RfcError(
            "pyrfc is not installed. Install the 'rfc' extra (requires the SAP NW RFC SDK)",
            details={"hint": "pip install 'erp-forensics[rfc]'"},
            cause=e,
        )
    return pyrfc


def _default_connection_factory(params: Dict[str, Any]):
    return _load_pyrfc().Connection(**params)


def normalize_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Clean connection params: 2-digit ``sysnr``, 3-digit ``client``."""
    normalized: Dict[str, Any] = {}
    for key in _PARAM_KEYS:
        value = params.get(key)
        if value not in (None, ""):
            normalized[key] = value
    if "mshost" in normalized:
        normalized.pop("ashost", None)
    elif params.get("sysnr") not in (None, ""):
        normalized["sysnr"] = str(params["sysnr"]).zfill(2)
    if params.get("client") not in (None, ""):
        normalized["client"] = str(params["client"]).zfill(3)
    return normalized


def redact(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("***" if k in _SECRET_KEYS else v) for k, v in params.items()}


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class RfcClient:
    """One RFC session with timeout, retry and circuit breaking."""

    def __init__(
        self,
        params: Dict[str, Any],
        connection_factory: Optional[Callable[[Dict[str, Any]], Any]] = None,
        call_timeout: float = 30.0,
        retries: int = 2,
        backoff_base: float = 0.5,
        transient_markers: Iterable[str] = TRANSIENT_MARKERS,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.params = normalize_params(params)
        self.call_timeout = call_timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self.transient_markers = tuple(m.lower() for m in transient_markers)
        self.breaker = breaker or CircuitBreaker(f"rfc:{self.destination}")
        self._factory = connection_factory or _default_connection_factory
        self._sleep = sleep
        self._conn = None

    @property
    def destination(self) -> str:
        host = self.params.get("mshost") or self.params.get("ashost") or "local"
        return f"{host}/{self.params.get('sysnr', '')}/{self.params.get('client', '')}"

    @property
    def connection_type(self) -> str:
        if "mshost" in self.params:
            return "load-balanced"
        if "saprouter" in self.params:
            return "router"
        return "direct"

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def is_alive(self) -> bool:
        return self._conn is not None and bool(getattr(self._conn, "alive", True))

    # =========================================================================
    # Session
    # =========================================================================

    async def open(self) -> None:
        """Establish the session.

        Raises:
            RfcError: connection failed (credentials redacted in details)
        """
        try:
            self._conn = await asyncio.to_thread(self._factory, dict(self.params))
        except RfcError:
            raise
        except Exception as e:
            self._conn = None
            raise RfcError(
                f"Failed to open RFC connection: {e}",
                details={"params": redact(self.params), "cause": str(e)},
                cause=e,
            )
        logger.info(f"RFC connection opened to {self.destination} ({self.connection_type})")

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            await asyncio.to_thread(conn.close)
        except Exception as e:
            logger.warning(f"Error closing RFC connection to {self.destination}: {e}")

    # =========================================================================
    # Calls
    # =========================================================================

    def is_transient(self, error: BaseException) -> bool:
        text = str(error).lower()
        return any(marker in text for marker in self.transient_markers)

    async def _invoke(self, function_name: str, params: Dict[str, Any]) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._conn.call, function_name, **params),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError:
            record_protocol_call("rfc", (time.perf_counter() - started) * 1000, error=True)
            raise RfcError(
                f"RFC call to {function_name} timed out after {self.call_timeout}s",
                details={"functionModule": function_name, "timeout": self.call_timeout},
            )
        except Exception:
            record_protocol_call("rfc", (time.perf_counter() - started) * 1000, error=True)
            raise
        record_protocol_call("rfc", (time.perf_counter() - started) * 1000)
        return result or {}

    async def call(self, function_name: str, **params) -> Dict[str, Any]:
        """Call a function module.

        Transient failures are retried ``retries`` times with delays
        ``backoff_base * 2**attempt``, reopening the session first.

        Raises:
            RfcError: call failed; ``details.circuitBreaker`` is set when the
                breaker rejected the call without touching the connection
        """
        attempt = 0
        while True:
            try:
                if self._conn is None:
                    await self.open()
                return await self.breaker.execute(lambda: self._invoke(function_name, params))
            except CircuitBreakerOpenError as e:
                raise RfcError(
                    f"Circuit breaker open for {function_name}: {e}",
                    details={"functionModule": function_name, "circuitBreaker": True, **e.details},
                    cause=e,
                )
            except RfcError:
                raise
            except Exception as e:
                if self.is_transient(e) and attempt < self.retries:
                    delay = self.backoff_base * (2 ** attempt)
                    logger.warning(
                        f"RFC call {function_name} failed ({e}), "
                        f"retrying in {delay:.2f}s (attempt {attempt + 1}/{self.retries})"
                    )
                    await self.close()
                    await self._sleep(delay)
                    attempt += 1
                    continue
                raise RfcError(
                    f"RFC call to {function_name} failed: {e}",
                    details={"functionModule": function_name, "attempt": attempt + 1, "cause": str(e)},
                    cause=e,
                )

    async def ping(self) -> bool:
        try:
            await self.call("RFC_PING")
            return True
        except Exception as e:
            logger.debug(f"RFC ping to {self.destination} failed: {e}")
            return False

    async def get_system_info(self) -> Dict[str, Any]:
        result = await self.call("RFC_SYSTEM_INFO")
        return {key: _strip(value) for key, value in (result.get("RFCSI_EXPORT") or {}).items()}

    async def search_functions(self, pattern: str) -> List[Dict[str, str]]:
        result = await self.call("RFC_FUNCTION_SEARCH", FUNCNAME=pattern)
        rows = result.get("FUNCTIONS") or result.get("FUNCNAME_LIST") or []
        return [
            {
                "FUNCNAME": _strip(row.get("FUNCNAME", "")),
                "GROUPNAME": _strip(row.get("GROUPNAME", "")),
                "APPL": _strip(row.get("APPL", "")),
            }
            for row in rows
        ]

    def get_breaker_stats(self) -> Dict[str, Any]:
        return self.breaker.get_stats()
