"""
Field Mapping Engine Tests

Validates declarative source-to-target mapping:
1. An LN finance record maps to SAP FI fields through LN_FI_RULES
2. Rule mechanisms: value map, named converter, transform, concatenation, defaults
3. Converters: numbers, dates, padding, flags and Infor-specific codes
4. Rule validation rejects conflicting and incomplete rules
5. Strict mode raises on rule failure; lenient mode emits None
6. Rule sets load from and save to JSON
"""

import json

import pytest

from core.errors import ConfigurationError, RuleValidationError, TransformError
from core.mapping import CONVERTERS, FieldMappingEngine, MappingRule, RuleSet, validate_rules
from migration.rules import LN_FI_RULES, get_rule_set, list_rule_sets
from migration.rules.ln_fi import ledger_account, posting_period


LN_RECORD = {
    "t$leac": "00500100",
    "t$perd": 1,
    "t$year": 2024,
    "t$dctp": "NOR",
    "t$dbcr": "D",
    "t$ccur": "usd",
    "t$cpnb": 100,
    "t$amnt": 12500.50,
}


class TestLNFinanceRules:
    """LN tfgld106 to SAP FI."""

    def test_ln_record_to_fi_document(self):
        output = FieldMappingEngine(LN_FI_RULES).apply_record(LN_RECORD)
        expected = {
            "SAKNR": "0000500100",
            "MONAT": "01",
            "GJAHR": 2024,
            "BLART": "SA",
            "SHKZG": "S",
            "WAERS": "USD",
            "BUKRS": "0100",
            "WRBTR": 12500.5,
            "SourceSystem": "INFOR_LN",
        }
        assert {key: output[key] for key in expected} == expected

    def test_every_target_emitted(self):
        engine = FieldMappingEngine(LN_FI_RULES)
        output = engine.apply_record({})
        assert set(output) == set(engine.targets)
        assert output["MWSKZ"] == "V0"
        assert output["BKTXT"] == "General Ledger"
        assert output["BUDAT"] is None

    def test_credit_and_reversal(self):
        output = FieldMappingEngine(LN_FI_RULES).apply_record({"t$dbcr": "C", "t$dctp": "REV", "t$stat": "PRV"})
        assert (output["SHKZG"], output["BLART"], output["BSTAT"]) == ("H", "AB", "V")

    def test_special_periods(self):
        assert posting_period(13) == "013"
        assert posting_period("7") == "07"
        assert posting_period(None) == "00"

    def test_ledger_account_repadded(self):
        assert ledger_account("000140000") == "0000140000"
        assert ledger_account("") == ""

    def test_rule_set_registry(self):
        assert list_rule_sets() == [
            "LN_FI_RULES", "LN_MM_RULES", "LN_PP_RULES", "LN_SD_RULES",
            "M3_FI_RULES", "M3_MM_RULES", "M3_PP_RULES", "M3_SD_RULES",
        ]
        assert get_rule_set("LN_FI_RULES") is LN_FI_RULES
        with pytest.raises(ConfigurationError):
            get_rule_set("CSI_FI_RULES")


class TestMechanisms:
    """Per-rule behaviour."""

    def test_value_map_string_key_fallback(self):
        engine = FieldMappingEngine([MappingRule(source="k", target="T", value_map={"1": "S", "2": "H"})])
        assert engine.apply_record({"k": 2}) == {"T": "H"}

    def test_value_map_miss_without_default_passes_value(self):
        engine = FieldMappingEngine([MappingRule(source="k", target="T", value_map={"A": "B"})])
        assert engine.apply_record({"k": "Z"}) == {"T": "Z"}

    def test_converter_empty_result_uses_default(self):
        engine = FieldMappingEngine([MappingRule(source="d", target="BUDAT", convert="toDate", default="1900-01-01")])
        assert engine.apply_record({"d": "00000000"}) == {"BUDAT": "1900-01-01"}

    def test_callable_default_sees_record(self):
        engine = FieldMappingEngine([MappingRule(target="KEY", default=lambda r: f"{r['a']}-{r['b']}")])
        assert engine.apply_record({"a": 1, "b": 2}) == {"KEY": "1-2"}

    def test_none_is_a_legal_default(self):
        engine = FieldMappingEngine([MappingRule(target="EMPTY", default=None)])
        assert engine.apply_record({}) == {"EMPTY": None}

    def test_concatenation(self):
        engine = FieldMappingEngine([MappingRule(sources=["first", "last"], target="NAME", separator=" ")])
        assert engine.apply_record({"first": "Ada", "last": "Lovelace"}) == {"NAME": "Ada Lovelace"}

    def test_pass_through_keeps_unread_fields(self):
        engine = FieldMappingEngine([MappingRule(source="a", target="A")], pass_through=True)
        assert engine.apply_record({"a": 1, "extra": 2}) == {"A": 1, "extra": 2}
        assert engine.get_stats()["unmapped"] == 1

    def test_legacy_rename(self):
        engine = FieldMappingEngine.from_legacy(["KUNNR->Customer", "NAME1 -> CustomerName"])
        assert engine.apply_record({"KUNNR": "1", "NAME1": "Acme"}) == {"Customer": "1", "CustomerName": "Acme"}
        with pytest.raises(RuleValidationError):
            MappingRule.from_legacy("KUNNR")

    def test_stats(self):
        engine = FieldMappingEngine([MappingRule(source="a", target="A"), MappingRule(target="B", default=1)])
        engine.apply_records([{"a": 1}, {"a": 2}])
        assert engine.get_stats() == {"totalRules": 2, "processed": 2, "mapped": 4, "unmapped": 0, "errors": 0}
        engine.reset_stats()
        assert engine.get_stats()["processed"] == 0


class TestConverters:
    """Named converters."""

    def test_decimal(self):
        to_decimal = CONVERTERS["toDecimal"]
        assert to_decimal("1,250.50") == 1250.5
        assert to_decimal("100.00-") == -100.0
        assert to_decimal("abc") == 0
        assert to_decimal(None) == 0

    def test_integer_leading_digits(self):
        assert CONVERTERS["toInteger"]("2024abc") == 2024
        assert CONVERTERS["toInteger"]("x") == 0

    def test_dates(self):
        to_date = CONVERTERS["toDate"]
        assert to_date("20240131") == "2024-01-31"
        assert to_date("2024-01-31T10:00:00Z") == "2024-01-31"
        assert to_date("/Date(1706659200000)/") == "2024-01-31"
        assert to_date("") is None

    def test_padding(self):
        assert CONVERTERS["padLeft10"]("4711") == "0000004711"
        assert CONVERTERS["padLeft10"]("AB-1") == "AB-1"
        assert CONVERTERS["padLeft10"](4711.0) == "0000004711"

    def test_flags(self):
        assert CONVERTERS["boolYN"]("X") is True
        assert CONVERTERS["boolYN"]("N") is False
        assert CONVERTERS["boolTF"](1) == "T"

    def test_infor_codes(self):
        assert CONVERTERS["inforLNItemType"]("3") == "FERT"
        assert CONVERTERS["inforLNItemType"]("9") == "HAWA"
        assert CONVERTERS["inforUomToISO"]("pcs") == "EA"
        assert CONVERTERS["inforUomToISO"]("box") == "BX"
        assert CONVERTERS["inforLNCompanySuffix"]("tcibd001100") == "tcibd001"
        assert CONVERTERS["lawsonAccountString"]("10-100-4000-00") == "4000"
        assert CONVERTERS["stripLeadingZeros"]("000") == "0"


class TestValidation:
    """Structural rule checks."""

    def test_duplicate_sourced_target(self):
        report = validate_rules([MappingRule(source="a", target="T"), MappingRule(source="b", target="T")])
        assert not report.valid
        assert "duplicate target 'T'" in report.errors[0]

    def test_sourced_plus_default_for_same_target_allowed(self):
        report = validate_rules([MappingRule(source="a", target="T"), MappingRule(target="T", default="x")])
        assert report.valid

    def test_multiple_mechanisms(self):
        rule = MappingRule(source="a", target="T", convert="trim", value_map={"a": "b"})
        assert "only one of" in validate_rules([rule]).errors[0]

    def test_unknown_converter_rejected_at_construction(self):
        with pytest.raises(RuleValidationError) as exc:
            FieldMappingEngine([MappingRule(source="a", target="T", convert="toKlingon")])
        assert "unknown converter" in exc.value.details["errors"][0]

    def test_rule_without_source_or_default(self):
        assert not validate_rules([MappingRule(target="T")]).valid

    def test_builtin_rule_set_valid(self):
        assert FieldMappingEngine(LN_FI_RULES).validate().valid


class TestFailureModes:
    """Transform failures."""

    def _failing(self, value):
        raise ValueError("cannot transform")

    def test_lenient_emits_none(self):
        engine = FieldMappingEngine([MappingRule(source="a", target="T", transform=self._failing)])
        assert engine.apply_record({"a": 1}) == {"T": None}
        assert engine.get_stats()["errors"] == 1

    def test_strict_raises(self):
        engine = FieldMappingEngine([MappingRule(source="a", target="T", transform=self._failing)], strict=True)
        with pytest.raises(TransformError) as exc:
            engine.apply_record({"a": 1})
        assert exc.value.details["target"] == "T"


class TestRuleSetJson:
    """JSON persistence."""

    def test_load_from_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "ruleSetId": "LAWSON_GL",
            "name": "Lawson GL",
            "sourceSystem": "INFOR_LAWSON",
            "rules": [
                {"source": "ACCOUNT", "target": "SAKNR", "convert": "padLeft10"},
                {"source": "ACCOUNT-TYPE", "target": "KTOKS", "valueMap": {"B": "BS", "R": "PL"}, "default": "PL"},
                {"target": "SourceSystem", "default": "INFOR_LAWSON"},
            ],
        }))
        rule_set = RuleSet.from_json(path)
        output = FieldMappingEngine(rule_set).apply_record({"ACCOUNT": "1000", "ACCOUNT-TYPE": "B"})
        assert output == {"SAKNR": "0000001000", "KTOKS": "BS", "SourceSystem": "INFOR_LAWSON"}

    def test_save_and_reload(self, tmp_path):
        rule_set = RuleSet("X", "X rules", [MappingRule(source="a", target="A", convert="trim")], source_system="SAP")
        path = tmp_path / "x.json"
        rule_set.to_json(path)
        reloaded = RuleSet.from_json(path)
        assert reloaded.rules[0].convert == "trim"
        assert reloaded.source_system == "SAP"

    def test_transform_rules_not_serializable(self, tmp_path):
        with pytest.raises(RuleValidationError):
            LN_FI_RULES.to_json(tmp_path / "ln.json")
