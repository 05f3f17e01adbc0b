"""
Error Taxonomy Tests

Validates the engine's error classes:
1. Every error carries a stable code and serializes to the same JSON shape
2. OData errors keep status and response body
3. Authorization failures are recognized from status, type and message
4. Fatal errors (open breaker, drained pool, cancellation, bad config) are classified
"""

from core.errors import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConfigurationError,
    ErrorKind,
    ExtractionError,
    ForensicsError,
    IONError,
    InforError,
    MigrationObjectError,
    ODataError,
    OperationCancelledError,
    PoolDrainedError,
    RfcError,
    TableReadError,
    is_authorization_error,
    is_fatal_error,
)


class TestErrorShape:
    """JSON form and codes."""

    def test_to_dict_fields(self):
        err = TableReadError("Table BKPF not readable", details={"table": "BKPF"})
        data = err.to_dict()
        assert data["name"] == "TableReadError"
        assert data["code"] == "ERR_TABLE_READ"
        assert data["message"] == "Table BKPF not readable"
        assert data["details"] == {"table": "BKPF"}
        assert data["timestamp"].endswith("Z")
        assert "+00:00" not in data["timestamp"]

    def test_code_override(self):
        err = ExtractionError("boom", code="ERR_CUSTOM")
        assert err.code == "ERR_CUSTOM"
        assert err.kind == ErrorKind.EXTRACTION

    def test_cause_is_chained(self):
        root = ValueError("bad value")
        err = MigrationObjectError("object failed", cause=root)
        assert err.__cause__ is root
        assert err.cause is root

    def test_odata_error_carries_status(self):
        err = ODataError("Not found", status_code=404, response_body={"error": "missing"})
        data = err.to_dict()
        assert data["statusCode"] == 404
        assert data["response"] == {"error": "missing"}

    def test_infor_hierarchy(self):
        err = IONError("gateway down")
        assert isinstance(err, InforError)
        assert isinstance(err, ForensicsError)
        assert err.code == "ERR_ION"


class TestClassification:
    """Authorization and fatal error predicates."""

    def test_authentication_error_is_authorization(self):
        assert is_authorization_error(AuthenticationError("401"))

    def test_forbidden_status_is_authorization(self):
        assert is_authorization_error(ODataError("denied", status_code=403))
        assert not is_authorization_error(ODataError("server", status_code=500))

    def test_message_markers(self):
        assert is_authorization_error(TableReadError("No authorization for table PA0008"))
        assert is_authorization_error(TableReadError("read failed", details={"cause": "S_TABU_DIS missing"}))
        assert not is_authorization_error(TableReadError("Table does not exist"))

    def test_fatal_errors(self):
        assert is_fatal_error(CircuitBreakerOpenError("open"))
        assert is_fatal_error(PoolDrainedError("drained"))
        assert is_fatal_error(OperationCancelledError("stop"))
        assert is_fatal_error(ConfigurationError("bad"))

    def test_rfc_error_with_breaker_flag_is_fatal(self):
        assert is_fatal_error(RfcError("breaker", details={"circuitBreaker": True}))
        assert not is_fatal_error(RfcError("timeout"))

    def test_ordinary_errors_not_fatal(self):
        assert not is_fatal_error(TableReadError("missing"))
        assert not is_fatal_error(ValueError("x"))

    def test_wrapped_breaker_is_fatal(self):
        assert is_fatal_error(TableReadError("read failed", details={"circuitBreaker": True}))
        rfc = RfcError("breaker", details={"circuitBreaker": True}, cause=CircuitBreakerOpenError("open"))
        wrapped = ExtractionError("extractor failed", cause=TableReadError("read failed", cause=rfc))
        assert is_fatal_error(wrapped)
        assert is_fatal_error(MigrationObjectError("object failed", cause=PoolDrainedError("drained")))
        assert not is_fatal_error(ExtractionError("extractor failed", cause=TableReadError("missing")))
