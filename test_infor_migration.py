"""
Infor Migration Tests

Validates the Infor LN and M3 rule sets and migration objects:
1. Every registered rule set is structurally valid and tagged with its source system
2. LN and M3 materials, production, sales and finance codes map to SAP values
3. LN business partners sharing a name and city merge into one partner with both roles
4. A merged partner run still reconciles: merged rows count as accounted for
5. LN item master and GL accounts build on the LN rule sets and company codes
6. M3 customers, suppliers, items, accounts and journals run end to end in mock mode
"""

import asyncio
from collections import defaultdict

import pytest

from core.mapping import FieldMappingEngine, validate_rules
from migration.objects import MigrationContext, MigrationObjectRegistry
from migration.objects.infor_ln import (
    InforLNBusinessPartnerObject,
    InforLNGLAccountObject,
    InforLNGLJournalObject,
    InforLNItemMasterObject,
    merge_partners,
)
from migration.objects.infor_m3 import (
    InforM3CustomerObject,
    InforM3GLAccountObject,
    InforM3GLJournalObject,
    InforM3ItemMasterObject,
    InforM3VendorObject,
)
from migration.rules import (
    LN_MM_RULES,
    LN_PP_RULES,
    LN_SD_RULES,
    M3_FI_RULES,
    M3_MM_RULES,
    M3_PP_RULES,
    M3_SD_RULES,
    RULE_SETS,
)
from migration.rules.ln_sd import customer_number


def mapped(obj, ctx=None):
    """Extract the mock rows of a migration object and map them."""
    records = asyncio.run(obj.extract(ctx or MigrationContext()))
    return obj.transform(records)


def by_key(records, field):
    return {r[field]: r for r in records}


class TestRuleSets:
    """Structure of the registered rule sets."""

    @pytest.mark.parametrize("rule_set_id", sorted(RULE_SETS))
    def test_valid(self, rule_set_id):
        rule_set = RULE_SETS[rule_set_id]
        assert validate_rules(rule_set.rules).valid
        assert rule_set.source_system in ("INFOR_LN", "INFOR_M3")
        assert rule_set.rule_set_id.startswith(rule_set.source_system[6:8])

    def test_source_system_column(self):
        assert FieldMappingEngine(M3_SD_RULES).apply_record({})["SourceSystem"] == "INFOR_M3"
        assert FieldMappingEngine(LN_PP_RULES).apply_record({})["SourceSystem"] == "INFOR_LN"


class TestLNRules:
    """LN materials, production and sales rules."""

    def test_item(self):
        output = FieldMappingEngine(LN_MM_RULES).apply_record({
            "item": "rm-1", "dsca": " Plate ", "kitm": "2", "cuni": "pcs", "cwar": "wh01a", "lwar": "",
            "cmnf": "", "t$plng": "9",
        })
        assert output["MATNR"] == "RM-1" and output["MAKTX"] == "Plate"
        assert (output["MTART"], output["BESKZ"]) == ("HALB", "E")
        assert output["MEINS"] == "EA"
        assert (output["WERKS"], output["LGORT"]) == ("WH01", "0001")
        assert (output["DISPO"], output["DISMM"], output["GEWEI"]) == ("000", "PD", "KG")

    def test_unknown_item_type_is_trading_good(self):
        output = FieldMappingEngine(LN_MM_RULES).apply_record({"kitm": "7"})
        assert (output["MTART"], output["BESKZ"]) == ("HAWA", "F")

    def test_production(self):
        output = FieldMappingEngine(LN_PP_RULES).apply_record(
            {"t$post": "4", "t$stim": "1.5", "t$rtim": "abc", "t$site": "plant1", "t$optp": "2"}
        )
        assert output["STATUS"] == "TECO"
        assert (output["VGW01"], output["VGW02"]) == (1.5, 0.0)
        assert output["WERKS"] == "PLAN"
        assert output["STEUS"] == "PP02"

    def test_sales(self):
        output = FieldMappingEngine(LN_SD_RULES).apply_record(
            {"t$bpid": "BP000123", "t$slof": "SO-12", "t$ptcd": "N60", "t$sotp": "XYZ", "t$odat": "20240301"}
        )
        assert output["KUNNR"] == "0000000123"
        assert output["VKORG"] == "0012"
        assert output["ZTERM"] == "0002"
        assert output["AUART"] == "OR"
        assert output["AUDAT"] == "2024-03-01"

    def test_customer_number(self):
        assert customer_number("bp42") == "0000000042"
        assert customer_number("CUST-9") == "CUST-9"
        assert customer_number(None) == ""


class TestM3Rules:
    """M3 finance, materials, production and sales rules."""

    def test_voucher(self):
        output = FieldMappingEngine(M3_FI_RULES).apply_record({
            "AITM": "0004010", "ACYP": "202403", "VSER": "AP", "DBCR": "C", "DIVI": "1", "VONO": "77",
            "ACAM": "-125.40", "CUCD": "eur",
        })
        assert output["SAKNR"] == "0000004010"
        assert (output["MONAT"], output["GJAHR"]) == ("03", 2024)
        assert (output["BLART"], output["SHKZG"]) == ("KR", "H")
        assert (output["BUKRS"], output["BELNR"]) == ("0001", "0000000077")
        assert output["WRBTR"] == -125.4
        assert output["WAERS"] == "EUR"

    def test_short_period(self):
        output = FieldMappingEngine(M3_FI_RULES).apply_record({"ACYP": "2024"})
        assert (output["MONAT"], output["GJAHR"]) == ("", 2024)

    @pytest.mark.parametrize("item_type,material_type,procurement", [
        ("PUR", "ROH", "F"),
        ("MFG", "HALB", "E"),
        ("MRO", "HIBE", "F"),
        ("PKG", "VERP", "F"),
        ("???", "HAWA", "F"),
    ])
    def test_item_types(self, item_type, material_type, procurement):
        output = FieldMappingEngine(M3_MM_RULES).apply_record({"ITTY": item_type})
        assert (output["MTART"], output["BESKZ"]) == (material_type, procurement)

    def test_item_defaults(self):
        output = FieldMappingEngine(M3_MM_RULES).apply_record({"UNMS": "KG", "PDLN": "5", "BUYE": "", "ABCD": ""})
        assert output["MEINS"] == "KG"
        assert output["SPART"] == "05"
        assert output["EKGRP"] == "001"
        assert output["MAABC"] == "C"
        assert FieldMappingEngine(M3_MM_RULES).apply_record({})["SPART"] == "00"

    def test_order_status(self):
        engine = FieldMappingEngine(M3_PP_RULES)
        assert [engine.apply_record({"ORST": s})["STATUS"] for s in ("20", "40", "70", "90", "99")] == [
            "CRTD", "REL", "TECO", "DLT", "CRTD",
        ]
        assert engine.apply_record({"FACI": "f01"})["WERKS"] == "F01"

    def test_sales_order(self):
        output = FieldMappingEngine(M3_SD_RULES).apply_record(
            {"CUNO": "4711", "TEDL": "FOB", "FACI": "F02", "PLCD": "ZZZ", "DIVI": "7"}
        )
        assert output["KUNNR"] == "0000004711"
        assert output["INCO1"] == "FOB"
        assert output["VTWEG"] == "20"
        assert output["KSCHL"] == "PR00"
        assert output["VKORG"] == "0007"


class TestLNBusinessPartner:
    """Role merge of LN customers and suppliers."""

    def test_merge_into_first_partner(self):
        obj = InforLNBusinessPartnerObject()
        partners = by_key(mapped(obj), "BUT000-PARTNER")

        assert len(partners) == 10
        assert obj.merged_count == 2
        acme = partners["0000100001"]
        assert acme["BP_ROLES"] == ["FLCU01", "FLVN01"]
        assert acme["MergedPartners"] == ["0000300001"]
        # first record wins, later ones only fill gaps
        assert acme["ADRC-SMTP_ADDR"] == "ar@acme.example"
        assert "0000300001" not in partners and "0000300002" not in partners

    def test_merge_fills_missing_fields(self):
        partners = by_key(mapped(InforLNBusinessPartnerObject()), "BUT000-PARTNER")
        distributor = partners["0000200002"]
        assert distributor["BP_ROLES"] == ["FLVN01", "FLCU01"]
        assert distributor["ADRC-TEL_NUMBER"] == "+1 213 555 0155"
        assert distributor["KNVV-ZTERM"] == "N30"
        assert distributor["ADRC-SMTP_ADDR"] == "sales@globaldist.example"

    def test_customer_sales_defaults(self):
        partners = by_key(mapped(InforLNBusinessPartnerObject()), "BUT000-PARTNER")
        northwind = partners["0000100002"]
        assert (northwind["KNVV-VKORG"], northwind["KNVV-VTWEG"]) == ("1000", "10")
        assert northwind["ADRC-COUNTRY"] == "US"
        assert northwind["BUT000-BU_LANGU"] == "EN"

    def test_different_city_not_merged(self):
        records = [
            {"BUT000-PARTNER": "1", "BUT000-NAME_ORG1": "Acme", "ADRC-CITY1": "Chicago", "BP_ROLES": ["FLCU01"]},
            {"BUT000-PARTNER": "2", "BUT000-NAME_ORG1": "Acme", "ADRC-CITY1": "Denver", "BP_ROLES": ["FLVN01"]},
        ]
        assert len(merge_partners(records)) == 2

    def test_merge_leaves_input_untouched(self):
        records = [
            {"BUT000-PARTNER": "1", "BUT000-NAME_ORG1": "Acme", "ADRC-CITY1": "X", "BP_ROLES": ["FLCU01"]},
            {"BUT000-PARTNER": "2", "BUT000-NAME_ORG1": "ACME", "ADRC-CITY1": "x", "BP_ROLES": ["FLVN01"]},
        ]
        merged = merge_partners(records)
        assert merged[0]["BP_ROLES"] == ["FLCU01", "FLVN01"]
        assert records[0]["BP_ROLES"] == ["FLCU01"]

    def test_run_reconciles_merged_records(self):
        result = asyncio.run(InforLNBusinessPartnerObject().run(MigrationContext(mode="mock")))
        assert (result.extracted, result.transformed, result.loaded, result.rejected) == (12, 10, 10, 0)
        assert result.status == "completed"
        record_count = next(c for c in result.reconciliation.checks if c["check_id"] == "R1_RECORD_COUNT")
        assert record_count["passed"]


class TestLNMasterData:
    """LN items and ledger accounts."""

    def test_item_master(self):
        items = by_key(mapped(InforLNItemMasterObject()), "MATNR")
        assert len(items) == 15
        pump = items["FG-30001"]
        assert (pump["MTART"], pump["BESKZ"], pump["WERKS"], pump["MEINS"]) == ("FERT", "E", "WH03", "EA")
        assert (pump["MBRSH"], pump["MigrationObjectId"]) == ("M", "INFOR_LN_ITEM_MASTER")
        service = items["NS-60001"]
        assert (service["MTART"], service["BESKZ"], service["MEINS"]) == ("NLAG", "X", "HUR")

    def test_gl_accounts_per_company(self):
        accounts = mapped(InforLNGLAccountObject())
        assert len(accounts) == 40
        keyed = {(a["SKA1-SAKNR"], a["SKB1-BUKRS"]): a for a in accounts}
        revenue = keyed[("0000400000", "0100")]
        assert (revenue["SKA1-XBILK"], revenue["SKA1-GVTYP"], revenue["SKA1-KTOPL"]) == ("", "P", "INLN")
        receivables = keyed[("0000113100", "0200")]
        assert (receivables["SKA1-XBILK"], receivables["SKB1-XOPVW"], receivables["SKB1-MITKZ"]) == ("X", "X", "D")
        assert receivables["SKB1-XKRES"] == "X"

    def test_journal_accounts_exist(self):
        accounts = {a["SKA1-SAKNR"] for a in mapped(InforLNGLAccountObject())}
        lines = mapped(InforLNGLJournalObject())
        assert {line["ACDOCA-HKONT"] for line in lines} <= accounts


class TestM3Objects:
    """M3 objects in mock mode."""

    def test_customers(self):
        customers = by_key(mapped(InforM3CustomerObject()), "BUT000-PARTNER")
        assert len(customers) == 10
        munich = customers["M3C00005"]
        assert (munich["KNVV-KDGRP"], munich["KNB1-ZTERM"], munich["KNKK-KLIMK"]) == ("04", "0060", 120000)
        assert munich["BUT000-XDELE"] == ""
        assert munich["BP_ROLES"] == ["FLCU01"]
        assert customers["M3C00010"]["KNB1-ZTERM"] == "0001"

    def test_suppliers(self):
        suppliers = by_key(mapped(InforM3VendorObject()), "BUT000-PARTNER")
        assert len(suppliers) == 8
        assert suppliers["M3V00001"]["LFM1-WEBRE"] == "X"
        assert suppliers["M3V00002"]["LFM1-WEBRE"] == ""
        assert suppliers["M3V00005"]["LFA1-KTOKK"] == "DLNR"
        assert suppliers["M3V00003"]["LFBK-IBAN"].startswith("SE45")
        assert suppliers["M3V00003"]["BP_ROLES"] == ["FLVN01"]

    def test_items_per_facility_and_warehouse(self):
        items = mapped(InforM3ItemMasterObject())
        assert len(items) == 15
        assert len({(i["MARA-MATNR"], i["MARC-WERKS"], i["MARD-LGORT"]) for i in items}) == 15
        keyed = by_key(items, "MARA-MATNR")
        assert (keyed["M3ITM0001"]["MARC-WERKS"], keyed["M3ITM0001"]["MARD-LGORT"]) == ("F01", "WH01")
        moulded = keyed["M3ITM0007"]
        assert (moulded["MARA-MTART"], moulded["MARC-BESKZ"], moulded["EINA-LIFNR"]) == ("HALB", "E", "")
        assert keyed["M3ITM0012"]["MARA-MEINS"] == "SET"

    def test_gl_accounts_per_division(self):
        accounts = mapped(InforM3GLAccountObject())
        assert len(accounts) == 36
        assert {a["SKB1-BUKRS"] for a in accounts} == {"D1", "D2"}
        keyed = {(a["SKA1-SAKNR"], a["SKB1-BUKRS"]): a for a in accounts}
        sales = keyed[("0000004000", "D2")]
        assert (sales["SKA1-XBILK"], sales["SKA1-GVTYP"], sales["SKA1-KTOPL"]) == ("", "P", "INM3")
        assert sales["SKB1-WAERS"] == "EUR"
        assert keyed[("0000001010", "D1")]["SKA1-XBILK"] == "X"

    def test_journal_vouchers_balance(self):
        lines = mapped(InforM3GLJournalObject())
        assert len(lines) == 27
        totals = defaultdict(lambda: {"S": 0.0, "H": 0.0})
        for line in lines:
            totals[line["BKPF-BELNR"]][line["ACDOCA-SHKZG"]] += line["ACDOCA-HSL"]
        assert len(totals) == 12
        assert all(t["S"] == pytest.approx(t["H"]) for t in totals.values())

    def test_journal_line_fields(self):
        lines = mapped(InforM3GLJournalObject())
        invoice = [line for line in lines if line["BKPF-BELNR"] == "0007000002"]
        assert [line["ACDOCA-BUZEI"] for line in invoice] == ["010", "020", "030"]
        assert invoice[1]["ACDOCA-KOSTL"] == "0000000100"
        assert invoice[1]["ACDOCA-HKONT"] == "0000004000"
        reversal = next(line for line in lines if line["BKPF-BELNR"] == "0007000010")
        assert reversal["BKPF-BLART"] == "AB"

    def test_journal_accounts_exist(self):
        accounts = {a["SKA1-SAKNR"] for a in mapped(InforM3GLAccountObject())}
        assert {line["ACDOCA-HKONT"] for line in mapped(InforM3GLJournalObject())} <= accounts

    def test_accounts_load_before_journals(self):
        registry = MigrationObjectRegistry.with_builtins()
        report = asyncio.run(registry.run_all(
            MigrationContext(mode="mock"), ["INFOR_M3_GL_JOURNAL", "INFOR_M3_GL_ACCOUNT"]
        ))
        stats = report["stats"]
        assert stats["execution_order"] == ["INFOR_M3_GL_ACCOUNT", "INFOR_M3_GL_JOURNAL"]
        assert stats["waves"] == 2
        assert stats["failed"] == 0
