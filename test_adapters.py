"""
Source Adapter Tests

Validates the uniform read surface over every ERP:
1. Registry creates adapters by source system id
2. Mock mode serves fixtures with projection, paging and denied tables
3. SAP synthesizes unknown tables from the requested fields
4. LN adds the company suffix for SQL reads and wraps driver failures
5. M3 restricts reads to the configured company and maps tables to MI programs
"""

import asyncio

import pytest

from connectors.adapters import M3Adapter, SapAdapter, create_adapter, list_available_adapters
from connectors.adapters.ln import LNAdapter
from connectors.adapters.m3 import company_column
from core.errors import ConfigurationError, InforDbError, InforError, TableReadError


class FakeDb:
    """Records selects and answers with canned rows."""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.selects = []
        self.is_connected = True

    async def select(self, table, fields=None, where=None, max_rows=0, offset=0, order_by=None):
        self.selects.append((table, fields, where, max_rows, offset))
        if self.error:
            raise self.error
        return {"rows": list(self.rows), "rowCount": len(self.rows)}

    async def health_check(self):
        return self.error is None

    async def disconnect(self):
        self.is_connected = False


class FakeM3:
    def __init__(self, records):
        self.records = records
        self.calls = []

    async def execute(self, program, transaction, params=None):
        self.calls.append((program, transaction, params))
        return {"program": program, "transaction": transaction, "records": list(self.records), "metadata": {}}

    async def close(self):
        pass


class TestRegistry:
    """Adapter registry."""

    def test_all_sources_registered(self):
        assert set(list_available_adapters()) >= {"SAP", "INFOR_LN", "INFOR_M3", "INFOR_CSI", "INFOR_LAWSON"}

    def test_create_case_insensitive(self):
        adapter = create_adapter("infor_ln", mode="mock")
        assert isinstance(adapter, LNAdapter)
        assert adapter.is_mock

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            create_adapter("ORACLE_EBS")

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            SapAdapter(mode="replay")


class TestMockMode:
    """Fixture serving."""

    def test_projection_and_paging(self):
        adapter = create_adapter("INFOR_LN")
        data = asyncio.run(adapter.read_table("tcibd001", fields=["t$item"], max_rows=2, offset=1))
        assert data.rows == [{"t$item": "ITEM-002"}, {"t$item": "ITEM-003"}]
        assert data.fields == ["t$item"]
        assert data.metadata["source"] == "mock"

    def test_denied_table_raises_read_error(self):
        adapter = SapAdapter(denied_tables=["usr02"])
        with pytest.raises(TableReadError) as exc:
            asyncio.run(adapter.read_table("USR02"))
        assert "authorization" in exc.value.message.lower()

    def test_custom_fixtures_replace_builtins(self):
        adapter = create_adapter("INFOR_M3", fixtures={"MITMAS": [{"MMITNO": "X"}]})
        data = asyncio.run(adapter.read_table("MITMAS"))
        assert data.rows == [{"MMITNO": "X"}]
        assert asyncio.run(adapter.read_table("OCUSMA")).rows == []

    def test_sap_synthesizes_unknown_tables(self):
        data = asyncio.run(SapAdapter().read_table("ZCUSTOM", fields=["BUKRS", "ZFIELD"]))
        assert len(data.rows) == 5
        assert data.rows[0] == {"BUKRS": "BUKRS-001", "ZFIELD": "ZFIELD-001"}

    def test_sap_known_fixture(self):
        data = asyncio.run(SapAdapter().read_table("T001", fields=["BUKRS"]))
        assert [r["BUKRS"] for r in data.rows] == ["1000", "2000"]

    def test_connect_returns_system_info(self):
        result = asyncio.run(create_adapter("INFOR_LN").connect())
        assert result["success"]
        assert result["systemInfo"]["product"] == "Infor LN"
        assert "tf" in result["systemInfo"]["packages"]

    def test_health_check_mock(self):
        health = asyncio.run(create_adapter("INFOR_CSI").health_check())
        assert health["ok"] and health["status"] == "mock"

    def test_query_entities_top(self):
        result = asyncio.run(create_adapter("INFOR_LAWSON").query_entities("GLAccount", top=2))
        assert result["totalCount"] == 2

    def test_sap_call_api_mock(self):
        result = asyncio.run(SapAdapter().call_api("BAPI_COMPANYCODE_GETLIST", {"X": 1}))
        assert result["mock"] and result["functionModule"] == "BAPI_COMPANYCODE_GETLIST"


class TestLNLive:
    """LN live reads over SQL."""

    def test_company_suffix(self):
        db = FakeDb(rows=[{"t$item": "A"}])
        adapter = LNAdapter(mode="live", company="5", db=db)
        data = asyncio.run(adapter.read_table("tcibd001", fields=["t$item"], max_rows=10))
        assert db.selects[0][0] == "tcibd001005"
        assert data.metadata["baseTable"] == "tcibd001"
        assert data.rows == [{"t$item": "A"}]

    def test_driver_error_wrapped(self):
        adapter = LNAdapter(mode="live", db=FakeDb(error=InforDbError("ORA-00942")))
        with pytest.raises(TableReadError) as exc:
            asyncio.run(adapter.read_table("tcibd001"))
        assert exc.value.details["causeCode"] == "ERR_INFOR_DB"

    def test_live_without_clients(self):
        with pytest.raises(ConfigurationError):
            asyncio.run(LNAdapter(mode="live").connect())

    def test_health_check_reports_failure(self):
        adapter = LNAdapter(mode="live", db=FakeDb(error=InforDbError("down")))
        health = asyncio.run(adapter.health_check())
        assert health["ok"] is False
        assert health["status"] == "error"


class TestM3Live:
    """M3 live reads."""

    def test_sql_reads_filter_company(self):
        db = FakeDb(rows=[{"MMITNO": "A"}])
        adapter = M3Adapter(mode="live", company="200", db=db)
        asyncio.run(adapter.read_table("mitmas", where="MMSTAT = '20'"))
        assert db.selects[0][2] == "MMCONO = 200 AND (MMSTAT = '20')"

    def test_company_column(self):
        assert company_column("OCUSMA") == "OKCONO"

    def test_mi_program_read(self):
        m3 = FakeM3([{"ITNO": "A"}, {"ITNO": "B"}, {"ITNO": "C"}])
        adapter = M3Adapter(mode="live", company="100", division="AAA", m3=m3)
        data = asyncio.run(adapter.read_table("MITMAS", max_rows=2, offset=1))
        assert m3.calls[0] == ("MMS200MI", "LstByNam", {"CONO": "100", "DIVI": "AAA"})
        assert [r["ITNO"] for r in data.rows] == ["B", "C"]
        assert data.metadata["source"] == "mi-program"

    def test_unmapped_table(self):
        adapter = M3Adapter(mode="live", m3=FakeM3([]))
        with pytest.raises(TableReadError) as exc:
            asyncio.run(adapter.read_table("ZZTABLE"))
        assert exc.value.details["causeCode"] == "ERR_INFOR"

    def test_call_api_endpoint_shape(self):
        with pytest.raises(InforError):
            asyncio.run(M3Adapter().call_api("MMS200MI"))
