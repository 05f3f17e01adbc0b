"""Generic HTTP client.

Low-level aiohttp client shared by the OData and Infor connectors.
Handles authentication headers, CSRF token negotiation, retries and error
mapping.

- 401 raises ``AuthenticationError`` and is never retried
- 403 mentioning CSRF refetches the token and retries once
- 429 waits for ``Retry-After`` (or the backoff delay) and retries
- 5xx and network errors are retried with ``RetryConfig``
- 204 returns ``None``
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type

import aiohttp

from connectors.auth import AuthProvider
from core.errors import (
    AuthenticationError,
    ErpConnectionError,
    ForensicsError,
    ODataError,
)
from core.observability.metrics import record_protocol_call
from core.resilience.circuit_breaker import CircuitBreaker
from core.resilience.retry import RetryConfig

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
CSRF_TTL = 25 * 60.0  # seconds
MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE", "MERGE")


@dataclass
class HttpResponse:
    """Status, headers and body text of a completed request."""
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def content_type(self) -> str:
        return (self.headers.get("Content-Type") or self.headers.get("content-type") or "").lower()

    def json(self) -> Any:
        return json.loads(self.text) if self.text else None


def _decode_body(text: str) -> Any:
    """JSON when possible, raw text otherwise."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text[:2000]


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class HttpClient:
    """Authenticated aiohttp client with CSRF handling and retries.

    Usage:
        client = HttpClient("https://host/sap/opu/odata/sap", auth=BasicAuthProvider(u, p))
        data = await client.get("API_BUSINESS_PARTNER/A_BusinessPartner")
        await client.close()
    """

    error_class: Type[ForensicsError] = ODataError
    protocol = "http"

    def __init__(
        self,
        base_url: str,
        auth: Optional[AuthProvider] = None,
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        breaker: Optional[CircuitBreaker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        csrf: bool = True,
        headers: Optional[Dict[str, str]] = None,
        sap_client: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.auth = auth or AuthProvider()
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self.breaker = breaker
        self.csrf_enabled = csrf
        self.default_headers = dict(headers or {})
        self.sap_client = sap_client
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._clock = clock
        self._csrf_token: Optional[str] = None
        self._csrf_fetched_at = 0.0

    # =========================================================================
    # Session
    # =========================================================================

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            # cookie jar keeps the gateway session that backs the CSRF token
            self._session = aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
        self._csrf_token = None

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    def _params(self, params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
        merged: Dict[str, str] = {}
        if self.sap_client:
            merged["sap-client"] = self.sap_client
        for key, value in (params or {}).items():
            if value is not None:
                merged[key] = str(value)
        return merged or None

    async def _headers(self, extra: Optional[Dict[str, str]], with_csrf: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        headers.update(self.default_headers)
        auth_header = await self.auth.get_authorization_header(self._get_session())
        if auth_header:
            headers["Authorization"] = auth_header
        if with_csrf:
            token = await self._ensure_csrf_token()
            if token:
                headers[CSRF_HEADER] = token
        if extra:
            headers.update(extra)
        return headers

    def _error(self, message: str, status: int = 0, body: Any = None, url: str = "", cause=None) -> ForensicsError:
        details = {"url": url, "status": status}
        if issubclass(self.error_class, ODataError):
            return self.error_class(message, status_code=status, response_body=body, details=details, cause=cause)
        details["response"] = body
        return self.error_class(message, details=details, cause=cause)

    # =========================================================================
    # CSRF
    # =========================================================================

    async def _ensure_csrf_token(self) -> Optional[str]:
        if self._csrf_token and self._clock() - self._csrf_fetched_at < CSRF_TTL:
            return self._csrf_token

        headers = {CSRF_HEADER: "Fetch"}
        auth_header = await self.auth.get_authorization_header(self._get_session())
        if auth_header:
            headers["Authorization"] = auth_header
        try:
            async with self._get_session().request(
                "HEAD",
                self._url(""),
                headers=headers,
                params=self._params(None),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                token = response.headers.get(CSRF_HEADER)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"CSRF token fetch failed for {self.base_url}: {e}")
            return None

        if token and token.lower() != "required":
            self._csrf_token = token
            self._csrf_fetched_at = self._clock()
            logger.debug(f"CSRF token fetched for {self.base_url}")
        return self._csrf_token

    def invalidate_csrf_token(self) -> None:
        self._csrf_token = None

    # =========================================================================
    # Requests
    # =========================================================================

    async def send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HttpResponse:
        """Send a request and return the raw response (status < 400).

        Raises:
            AuthenticationError: 401
            ErpConnectionError: network failure after retries
            error_class: other HTTP errors after retries
        """
        if self.breaker is not None:
            return await self.breaker.execute(
                lambda: self._send_with_retry(method, path, params, json_body, data, headers)
            )
        return await self._send_with_retry(method, path, params, json_body, data, headers)

    async def _send_with_retry(self, method, path, params, json_body, data, extra_headers) -> HttpResponse:
        method = method.upper()
        url = self._url(path)
        with_csrf = self.csrf_enabled and method in MUTATING_METHODS
        retry = self.retry_config
        attempt = 0
        csrf_retried = False

        while True:
            started = time.perf_counter()
            try:
                headers = await self._headers(extra_headers, with_csrf)
                async with self._get_session().request(
                    method,
                    url,
                    params=self._params(params),
                    json=json_body,
                    data=data,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    text = await response.text()
                    status = response.status
                    response_headers = response.headers
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                record_protocol_call(self.protocol, (time.perf_counter() - started) * 1000, error=True)
                if attempt < retry.max_retries:
                    delay = retry.get_delay(attempt)
                    logger.warning(
                        f"{method} {url} failed with {type(e).__name__}: {e}, "
                        f"retrying in {delay:.2f}s (attempt {attempt + 1}/{retry.max_retries})"
                    )
                    await self._sleep(delay)
                    attempt += 1
                    continue
                raise ErpConnectionError(
                    f"{method} {url} failed after {retry.max_retries} retries: {e}",
                    details={"url": url, "attempts": attempt + 1},
                    cause=e,
                )

            duration_ms = (time.perf_counter() - started) * 1000
            record_protocol_call(self.protocol, duration_ms, error=status >= 400)

            if status < 400:
                return HttpResponse(status, response_headers, text)

            if status == 401:
                self.auth.invalidate()
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    details={"url": url, "status": status, "cause": text[:500]},
                )

            if status == 403 and with_csrf and not csrf_retried:
                header_value = (response_headers.get(CSRF_HEADER) or "").lower()
                if "csrf" in text.lower() or header_value == "required":
                    logger.info(f"CSRF token rejected for {url}, refetching")
                    self.invalidate_csrf_token()
                    csrf_retried = True
                    continue

            if status == 429 and attempt < retry.max_retries:
                delay = _parse_retry_after(response_headers.get("Retry-After"))
                if delay is None:
                    delay = retry.get_delay(attempt)
                logger.warning(f"Rate limited on {url}, waiting {delay:.2f}s")
                await self._sleep(delay)
                attempt += 1
                continue

            if status in retry.retry_on_status and status != 429 and attempt < retry.max_retries:
                delay = retry.get_delay(attempt)
                logger.warning(
                    f"{method} {url} returned {status}, "
                    f"retrying in {delay:.2f}s (attempt {attempt + 1}/{retry.max_retries})"
                )
                await self._sleep(delay)
                attempt += 1
                continue

            raise self._error(f"HTTP {status} for {method} {url}", status, _decode_body(text), url)

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Send and decode: JSON for JSON bodies, text otherwise, None for 204."""
        response = await self.send(method, path, **kwargs)
        if response.status == 204 or not response.text:
            return None
        if "json" in response.content_type or response.text[:1] in ("{", "["):
            return response.json()
        return response.text

    async def head(self, path: str = "", params: Optional[Dict[str, Any]] = None) -> int:
        response = await self.send("HEAD", path, params=params)
        return response.status

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("GET", path, params=params, headers=headers)

    async def post(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, params=params, json_body=body)

    async def put(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, params=params, json_body=body)

    async def patch(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PATCH", path, params=params, json_body=body)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)
