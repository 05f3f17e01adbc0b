"""
RFC Connector Tests

Validates the SAP RFC stack without the NW RFC SDK:
1. Connection params are normalized and secrets redacted
2. Non-transient failures trip the per-client circuit breaker
3. Transient failures reopen the session and retry
4. Table reads resolve a read FM, slice fixed-width rows and coerce ABAP types
5. BAPI return messages raise on E/A/X and commit/rollback pairing
6. A breaker opened under a table read ends the extractor and the migration object
"""

import asyncio

import pytest

from connectors.adapters.sap import SapAdapter
from connectors.rfc import FunctionCaller, RfcClient, RfcPool, TableReader, check_return, clear_fm_cache, normalize_params, redact
from connectors.rfc.table_reader import coerce_value, parse_read_table_result, sanitize_table_name, split_where
from core.errors import ExtractionError, FunctionCallError, RfcError, TableReadError, is_fatal_error
from core.resilience import CircuitBreaker, CircuitState
from extraction import CoverageStatus, ExtractionContext
from extraction.extractors.sap_finance import GlAccountExtractor
from migration.objects import MigrationContext
from migration.objects.finance import GLAccountMasterObject


async def no_sleep(delay: float) -> None:
    return None


class FakeConnection:
    """Stands in for pyrfc.Connection; ``handler(name, params)`` decides each call."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.closed = False

    def call(self, name, **params):
        self.calls.append((name, params))
        return self.handler(name, params)

    def close(self):
        self.closed = True


class FakePool:
    """Minimal pool handing out a single client."""

    destination = "fake/00/100"

    def __init__(self, client):
        self.client = client
        self.acquired = 0
        self.released = 0

    async def acquire(self):
        self.acquired += 1
        return self.client

    async def release(self, client):
        self.released += 1


class ScriptedClient:
    """Client whose ``call`` answers from a dict of function name -> result or exception."""

    def __init__(self, answers):
        self.answers = answers
        self.calls = []

    async def call(self, name, **params):
        self.calls.append((name, params))
        answer = self.answers.get(name, {})
        if isinstance(answer, Exception):
            raise answer
        return answer(params) if callable(answer) else answer


class TestParams:
    """Connection parameter handling."""

    def test_sysnr_and_client_padded(self):
        params = normalize_params({"ashost": "10.0.0.1", "sysnr": "0", "client": "1", "user": "U", "passwd": "p"})
        assert params["sysnr"] == "00"
        assert params["client"] == "001"
        assert params["ashost"] == "10.0.0.1"

    def test_message_server_drops_ashost(self):
        params = normalize_params({"ashost": "a", "mshost": "ms", "group": "PUBLIC", "sysnr": "00", "client": "100"})
        assert "ashost" not in params
        assert "sysnr" not in params
        assert RfcClient(params).connection_type == "load-balanced"

    def test_redact_hides_password(self):
        assert redact({"user": "U", "passwd": "secret"}) == {"user": "U", "passwd": "***"}


class TestRfcClient:
    """Client call path."""

    def test_breaker_trips_after_three_failures(self):
        """Fourth call is rejected by the breaker and never reaches the connection."""
        def handler(name, params):
            raise ValueError("FU_NOT_FOUND")

        conn = FakeConnection(handler)
        client = RfcClient(
            {"ashost": "h", "sysnr": "00", "client": "100"},
            connection_factory=lambda params: conn,
            breaker=CircuitBreaker("t", failure_threshold=3),
            sleep=no_sleep,
        )

        async def scenario():
            for _ in range(3):
                with pytest.raises(RfcError) as exc:
                    await client.call("Z_BROKEN")
                assert not exc.value.circuit_breaker
            with pytest.raises(RfcError) as exc:
                await client.call("Z_BROKEN")
            return exc.value

        err = asyncio.run(scenario())
        assert err.circuit_breaker
        assert err.details["circuitBreaker"] is True
        assert len(conn.calls) == 3
        assert client.get_breaker_stats()["state"] == "open"

    def test_transient_failure_retried_on_new_session(self):
        opened = []
        attempts = []

        def handler(name, params):
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("connection reset by peer")
            return {"RFCSI_EXPORT": {"RFCSYSID": "PRD ", "RFCDBSYS": "HDB  "}}

        def factory(params):
            conn = FakeConnection(handler)
            opened.append(conn)
            return conn

        client = RfcClient({"ashost": "h", "sysnr": "00", "client": "100"}, connection_factory=factory, sleep=no_sleep)
        info = asyncio.run(client.get_system_info())

        assert info == {"RFCSYSID": "PRD", "RFCDBSYS": "HDB"}
        assert len(opened) == 2
        assert opened[0].closed

    def test_custom_transient_markers(self):
        client = RfcClient({"ashost": "h"}, transient_markers=("RFC_COMMUNICATION_FAILURE",))
        assert client.is_transient(Exception("rfc_communication_failure: gateway"))
        assert not client.is_transient(Exception("connection refused"))

    def test_open_failure_redacts_credentials(self):
        def factory(params):
            raise OSError("logon failed")

        client = RfcClient({"ashost": "h", "user": "U", "passwd": "secret"}, connection_factory=factory)
        with pytest.raises(RfcError) as exc:
            asyncio.run(client.open())
        assert exc.value.details["params"]["passwd"] == "***"

    def test_ping_false_on_failure(self):
        def handler(name, params):
            raise ValueError("no")

        client = RfcClient({"ashost": "h"}, connection_factory=lambda p: FakeConnection(handler), sleep=no_sleep)
        assert asyncio.run(client.ping()) is False


class TestTableReading:
    """Fixed-width table decoding."""

    def setup_method(self):
        clear_fm_cache()

    def test_coerce_value_by_type(self):
        assert coerce_value(" 42 ", "I") == 42
        assert coerce_value("1250.50-", "P") == -1250.5
        assert coerce_value("20240131", "D") == "2024-01-31"
        assert coerce_value("00000000", "D") is None
        assert coerce_value("134501", "T") == "13:45:01"
        assert coerce_value("  ABC  ", "C") == "ABC"

    def test_parse_slices_on_offsets(self):
        result = {
            "FIELDS": [
                {"FIELDNAME": "BUKRS", "OFFSET": "000000", "LENGTH": "000004", "TYPE": "C"},
                {"FIELDNAME": "GJAHR", "OFFSET": "000004", "LENGTH": "000004", "TYPE": "N"},
                {"FIELDNAME": "DMBTR", "OFFSET": "000008", "LENGTH": "000010", "TYPE": "P"},
            ],
            "DATA": [{"WA": "10002024    100.00"}, {"WA": "20002023     50.5-"}],
        }
        data = parse_read_table_result(result)
        assert data.fields == ["BUKRS", "GJAHR", "DMBTR"]
        assert data.rows[0] == {"BUKRS": "1000", "GJAHR": "2024", "DMBTR": 100.0}
        assert data.rows[1]["DMBTR"] == -50.5
        assert data.total_rows == 2

    def test_split_where_respects_line_width(self):
        clause = " AND ".join(f"FIELD{i} = 'VALUE{i}'" for i in range(10))
        lines = split_where(clause)
        assert all(len(line) <= 72 for line in lines)
        assert " ".join(lines) == clause

    def test_table_name_sanitized(self):
        assert sanitize_table_name("/bic/az'; drop") == "/BIC/AZDROP"
        with pytest.raises(TableReadError):
            sanitize_table_name("';")

    def test_resolves_first_available_fm_and_caches(self):
        missing = RfcError("FU_NOT_FOUND")
        data = {"FIELDS": [{"FIELDNAME": "MANDT", "OFFSET": "0", "LENGTH": "3", "TYPE": "C"}],
                "DATA": [{"WA": "100"}]}
        client = ScriptedClient({"/SAPDS/RFC_READ_TABLE": missing, "BBP_RFC_READ_TABLE": data})
        pool = FakePool(client)
        reader = TableReader(pool)

        async def scenario():
            first = await reader.read_table("T000")
            second = await reader.read_table("T000", where="MANDT = '100'")
            return first, second

        first, second = asyncio.run(scenario())
        assert first.rows == [{"MANDT": "100"}]
        assert first.metadata["functionModule"] == "BBP_RFC_READ_TABLE"
        probes = [name for name, _ in client.calls if name == "/SAPDS/RFC_READ_TABLE"]
        assert len(probes) == 1
        assert client.calls[-1][1]["OPTIONS"] == [{"TEXT": "MANDT = '100'"}]
        assert pool.released == pool.acquired

    def test_read_failure_wrapped(self):
        client = ScriptedClient({"RFC_READ_TABLE": RfcError("TABLE_NOT_AVAILABLE")})
        reader = TableReader(FakePool(client), preferred_fm="RFC_READ_TABLE")
        with pytest.raises(TableReadError) as exc:
            asyncio.run(reader.read_table("ZMISSING"))
        assert exc.value.details["table"] == "ZMISSING"
        assert exc.value.details["causeCode"] == "ERR_RFC"

    def test_stream_stops_on_short_chunk(self):
        def page(params):
            remaining = max(0, 5 - params["ROWSKIPS"])
            count = min(params["ROWCOUNT"], remaining)
            return {"FIELDS": [{"FIELDNAME": "N", "OFFSET": "0", "LENGTH": "2", "TYPE": "I"}],
                    "DATA": [{"WA": str(params["ROWSKIPS"] + i).rjust(2)} for i in range(count)]}

        reader = TableReader(FakePool(ScriptedClient({"RFC_READ_TABLE": page})), preferred_fm="RFC_READ_TABLE")

        async def scenario():
            return [chunk async for chunk in reader.stream_table("ZNUM", chunk_size=2)]

        chunks = asyncio.run(scenario())
        assert [len(c.rows) for c in chunks] == [2, 2, 1]
        assert chunks[-1].rows == [{"N": 4}]
        assert [c.offset for c in chunks] == [0, 2, 4]


class TestFunctionCaller:
    """BAPI return handling."""

    def test_error_message_raises(self):
        result = {"RETURN": [{"TYPE": "E", "ID": "FI", "NUMBER": "001", "MESSAGE": "Company code unknown"}]}
        with pytest.raises(FunctionCallError) as exc:
            check_return("BAPI_X", result)
        assert "Company code unknown" in exc.value.message

    def test_warnings_returned(self):
        result = {"RETURN": {"TYPE": "W", "MESSAGE": "Check totals"}}
        assert check_return("BAPI_X", result) == [{"TYPE": "W", "MESSAGE": "Check totals"}]

    def test_commit_after_success(self):
        client = ScriptedClient({"BAPI_ACC_DOCUMENT_POST": {"RETURN": [{"TYPE": "S", "MESSAGE": "posted"}]}})
        result = asyncio.run(FunctionCaller(FakePool(client)).call_with_commit("BAPI_ACC_DOCUMENT_POST"))
        assert [name for name, _ in client.calls] == ["BAPI_ACC_DOCUMENT_POST", "BAPI_TRANSACTION_COMMIT"]
        assert result.messages[0]["MESSAGE"] == "posted"

    def test_rollback_after_error(self):
        client = ScriptedClient({"BAPI_ACC_DOCUMENT_POST": {"RETURN": [{"TYPE": "A", "MESSAGE": "abort"}]}})
        with pytest.raises(FunctionCallError):
            asyncio.run(FunctionCaller(FakePool(client)).call_with_commit("BAPI_ACC_DOCUMENT_POST"))
        assert [name for name, _ in client.calls] == ["BAPI_ACC_DOCUMENT_POST", "BAPI_TRANSACTION_ROLLBACK"]


class TestBreakerThroughStack:
    """An open breaker stops extraction and migration when reached through the full RFC stack."""

    def build_adapter(self, conn):
        params = {"ashost": "h", "sysnr": "00", "client": "100"}
        breaker = CircuitBreaker("rfc:h", failure_threshold=1, reset_timeout=60)
        pool = RfcPool(
            params,
            size=1,
            client_factory=lambda: RfcClient(
                params, connection_factory=lambda p: conn, retries=0, breaker=breaker, sleep=no_sleep
            ),
        )
        reader = TableReader(pool, preferred_fm="RFC_READ_TABLE")
        return SapAdapter(mode="live", pool=pool, table_reader=reader), breaker

    def test_open_breaker_is_fatal(self):
        def handler(name, params):
            raise RuntimeError("ABAP runtime error DBIF_RSQL_SQL_ERROR")

        conn = FakeConnection(handler)
        adapter, breaker = self.build_adapter(conn)
        ctx = ExtractionContext(adapter=adapter)

        with pytest.raises(ExtractionError) as exc:
            asyncio.run(GlAccountExtractor(ctx).extract())

        # SKA1 tripped the breaker; SKB1 was rejected without touching the connection
        assert len(conn.calls) == 1
        assert breaker.state == CircuitState.OPEN
        assert is_fatal_error(exc.value)
        assert exc.value.details["causeCode"] == "ERR_TABLE_READ"
        assert exc.value.cause.details["circuitBreaker"] is True
        assert {r.table: r.status for r in ctx.coverage.for_extractor("FI_GL_ACCOUNTS")} == {
            "SKA1": CoverageStatus.FAILED,
            "SKB1": CoverageStatus.FAILED,
            "SKAT": CoverageStatus.FAILED,
        }

        migration_ctx = MigrationContext(mode="live", dry_run=True, adapter=adapter)
        with pytest.raises(TableReadError) as exc:
            asyncio.run(GLAccountMasterObject().run(migration_ctx))
        assert exc.value.details["circuitBreaker"] is True
        assert len(conn.calls) == 1

    def test_ordinary_read_failure_not_fatal(self):
        def handler(name, params):
            raise RuntimeError("TABLE_NOT_AVAILABLE")

        adapter, _ = self.build_adapter(FakeConnection(handler))

        async def scenario():
            return await adapter.read_table("SKA1")

        with pytest.raises(TableReadError) as exc:
            asyncio.run(scenario())
        assert not is_fatal_error(exc.value)
