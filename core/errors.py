"""Error taxonomy for the forensics and migration engine.

Every failure raised by the engine is a ``ForensicsError``. Each carries a
``kind`` discriminator and a stable ``code`` so callers can branch without
string matching:

    try:
        await reader.read_table("BKPF")
    except ForensicsError as e:
        if e.kind == ErrorKind.TABLE_READ:
            ...

Subclasses exist so ``except`` clauses stay readable; the JSON form is the
same for all of them (``to_dict``).
"""

from core.clock import utc_now_iso
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Discriminator for engine errors."""
    SAP_CONNECT = "SapConnect"
    CONNECTION = "Connection"
    AUTHENTICATION = "Authentication"
    ODATA = "OData"
    RFC = "Rfc"
    TABLE_READ = "TableRead"
    FUNCTION_CALL = "FunctionCall"
    EXTRACTION = "Extraction"
    RULE_VALIDATION = "RuleValidation"
    TRANSFORM = "Transform"
    MIGRATION_OBJECT = "MigrationObject"
    SIGNAVIO = "Signavio"
    TESTING = "Testing"
    CLOUD_MODULE = "CloudModule"
    INFOR = "Infor"
    ION = "ION"
    M3_API = "M3Api"
    IDO = "IDO"
    LANDMARK = "Landmark"
    INFOR_DB = "InforDb"
    CANONICAL_MAPPING = "CanonicalMapping"
    CONFIGURATION = "Configuration"
    CIRCUIT_OPEN = "CircuitBreakerOpen"
    POOL_DRAINED = "PoolDrained"
    POOL_ACQUIRE_TIMEOUT = "PoolAcquireTimeout"
    CANCELLED = "Cancelled"


class ForensicsError(Exception):
    """Base exception for all engine errors."""

    kind: ErrorKind = ErrorKind.SAP_CONNECT
    default_code: str = "ERR_SAPCONNECT"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details: Dict[str, Any] = dict(details or {})
        self.timestamp = utc_now_iso()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable form."""
        return {
            "name": self.name,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{self.name}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# Connectivity
# =============================================================================

class ErpConnectionError(ForensicsError):
    """Remote system unreachable or connection dropped."""
    kind = ErrorKind.CONNECTION
    default_code = "ERR_CONNECTION"


class AuthenticationError(ForensicsError):
    """Credentials rejected (401) or token acquisition failed."""
    kind = ErrorKind.AUTHENTICATION
    default_code = "ERR_AUTH"


class ODataError(ForensicsError):
    """HTTP-level OData failure carrying status and decoded body."""
    kind = ErrorKind.ODATA
    default_code = "ERR_ODATA"

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response_body: Any = None,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, details=details, code=code, cause=cause)
        self.status_code = status_code
        self.response_body = response_body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["statusCode"] = self.status_code
        data["response"] = self.response_body
        return data


class RfcError(ForensicsError):
    """Remote function call failure."""
    kind = ErrorKind.RFC
    default_code = "ERR_RFC"

    @property
    def circuit_breaker(self) -> bool:
        return bool(self.details.get("circuitBreaker"))


class TableReadError(ForensicsError):
    kind = ErrorKind.TABLE_READ
    default_code = "ERR_TABLE_READ"


class FunctionCallError(ForensicsError):
    """A function module returned an error message (type E, A or X)."""
    kind = ErrorKind.FUNCTION_CALL
    default_code = "ERR_FUNCTION_CALL"


# =============================================================================
# Runtime
# =============================================================================

class ExtractionError(ForensicsError):
    kind = ErrorKind.EXTRACTION
    default_code = "ERR_EXTRACTION"


class RuleValidationError(ForensicsError):
    """A mapping rule set failed validation."""
    kind = ErrorKind.RULE_VALIDATION
    default_code = "ERR_RULE_VALIDATION"


class TransformError(ForensicsError):
    kind = ErrorKind.TRANSFORM
    default_code = "ERR_TRANSFORM"


class MigrationObjectError(ForensicsError):
    kind = ErrorKind.MIGRATION_OBJECT
    default_code = "ERR_MIGRATION_OBJECT"


class SignavioError(ForensicsError):
    kind = ErrorKind.SIGNAVIO
    default_code = "ERR_SIGNAVIO"


class TestingError(ForensicsError):
    kind = ErrorKind.TESTING
    default_code = "ERR_TESTING"

    # keeps pytest from collecting this class
    __test__ = False


class CloudModuleError(ForensicsError):
    kind = ErrorKind.CLOUD_MODULE
    default_code = "ERR_CLOUD_MODULE"


class ConfigurationError(ForensicsError):
    """Invalid configuration: duplicate registration, cyclic graph, bad settings."""
    kind = ErrorKind.CONFIGURATION
    default_code = "ERR_CONFIG"


class OperationCancelledError(ForensicsError):
    kind = ErrorKind.CANCELLED
    default_code = "ERR_CANCELLED"


# =============================================================================
# Resilience
# =============================================================================

class CircuitBreakerOpenError(ForensicsError):
    """Raised without invoking the operation while a breaker is open."""
    kind = ErrorKind.CIRCUIT_OPEN
    default_code = "CIRCUIT_OPEN"


class PoolDrainedError(ForensicsError):
    kind = ErrorKind.POOL_DRAINED
    default_code = "POOL_DRAINED"


class PoolAcquireTimeoutError(ForensicsError):
    kind = ErrorKind.POOL_ACQUIRE_TIMEOUT
    default_code = "POOL_ACQUIRE_TIMEOUT"


# =============================================================================
# Infor
# =============================================================================

class InforError(ForensicsError):
    kind = ErrorKind.INFOR
    default_code = "ERR_INFOR"


class IONError(InforError):
    """ION API gateway failure."""
    kind = ErrorKind.ION
    default_code = "ERR_ION"


class M3ApiError(InforError):
    """M3 MI program returned failed transactions."""
    kind = ErrorKind.M3_API
    default_code = "ERR_M3_API"


class IDOError(InforError):
    kind = ErrorKind.IDO
    default_code = "ERR_IDO"


class LandmarkError(InforError):
    kind = ErrorKind.LANDMARK
    default_code = "ERR_LANDMARK"


class InforDbError(InforError):
    kind = ErrorKind.INFOR_DB
    default_code = "ERR_INFOR_DB"


class CanonicalMappingError(ForensicsError):
    kind = ErrorKind.CANONICAL_MAPPING
    default_code = "ERR_CANONICAL_MAPPING"


# =============================================================================
# Classification
# =============================================================================

AUTHORIZATION_MARKERS = (
    "not authorized",
    "no authorization",
    "not_authorized",
    "authorization",
    "forbidden",
    "access denied",
    "s_tabu_dis",
)


def is_authorization_error(error: BaseException) -> bool:
    """True when a failure looks like a missing-permission problem.

    Authentication errors and HTTP 401/403 responses count, as do messages
    mentioning authorization objects.
    """
    if isinstance(error, AuthenticationError):
        return True
    if isinstance(error, ODataError) and error.status_code in (401, 403):
        return True
    text = str(error).lower()
    if isinstance(error, ForensicsError):
        text = f"{text} {error.details.get('cause', '')}".lower()
    return any(marker in text for marker in AUTHORIZATION_MARKERS)


def is_fatal_error(error: BaseException) -> bool:
    """True for failures that must stop a run rather than be recorded as a gap.

    An open circuit breaker (raw, or wrapped by a protocol client or table
    reader), a drained pool, cancellation and configuration errors all
    qualify. Wrapped errors are followed through their ``cause`` chain.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        if isinstance(error, (CircuitBreakerOpenError, PoolDrainedError, OperationCancelledError, ConfigurationError)):
            return True
        if isinstance(error, ForensicsError):
            if error.details.get("circuitBreaker"):
                return True
            error = error.cause
        else:
            return False
    return False
