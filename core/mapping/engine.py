"""Declarative field-mapping engine.

Rule sets are plain data: each rule names a target field and, optionally, a
source field plus one mechanism (value map, named converter or transform
function) and a default. The engine applies every rule to a record in rule
order and always emits every target.

Usage:
    engine = FieldMappingEngine([
        MappingRule(source="t$ccur", target="WAERS", convert="toUpperCase"),
        MappingRule(source="t$dbcr", target="SHKZG", value_map={"D": "S", "C": "H"}, default="S"),
        MappingRule(target="SourceSystem", default="INFOR_LN"),
    ])
    row = engine.apply_record({"t$ccur": "usd", "t$dbcr": "C"})
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from core.errors import RuleValidationError, TransformError
from core.mapping.converters import CONVERTERS
from core.observability.logging import get_logger

logger = get_logger(__name__)


class _NoDefault:
    """Marker for 'no default declared' (None is a legal default)."""

    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __bool__(self) -> bool:
        return False


NO_DEFAULT: Any = _NoDefault()


@dataclass
class MappingRule:
    """A single field-mapping rule."""
    target: str
    source: Optional[str] = None
    sources: Optional[List[str]] = None  # concatenation
    separator: str = " "
    value_map: Optional[Dict[Any, Any]] = None
    convert: Optional[str] = None
    transform: Optional[Callable[[Any], Any]] = None
    default: Any = NO_DEFAULT
    description: str = ""

    @property
    def has_source(self) -> bool:
        return bool(self.source) or bool(self.sources)

    @property
    def has_default(self) -> bool:
        return not isinstance(self.default, _NoDefault)

    def resolve_default(self, record: Dict[str, Any]) -> Any:
        if not self.has_default:
            return None
        return self.default(record) if callable(self.default) else self.default

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingRule":
        """Build from a JSON-style dict (camelCase or snake_case keys)."""
        return cls(
            target=data.get("target", ""),
            source=data.get("source"),
            sources=data.get("sources"),
            separator=data.get("separator", " "),
            value_map=data.get("valueMap", data.get("value_map")),
            convert=data.get("convert"),
            transform=data.get("transform"),
            default=data["default"] if "default" in data else NO_DEFAULT,
            description=data.get("description", ""),
        )

    @classmethod
    def from_legacy(cls, rename: str) -> "MappingRule":
        """Parse a ``'SOURCE->TARGET'`` rename."""
        source, sep, target = rename.partition("->")
        if not sep:
            raise RuleValidationError(f"Legacy mapping must look like 'A->B': {rename!r}")
        return cls(source=source.strip(), target=target.strip())

    def to_dict(self) -> Dict[str, Any]:
        if self.transform is not None:
            raise RuleValidationError(
                f"Rule for '{self.target}' uses a transform function and cannot be serialized"
            )
        data: Dict[str, Any] = {"target": self.target}
        if self.source:
            data["source"] = self.source
        if self.sources:
            data["sources"] = list(self.sources)
            data["separator"] = self.separator
        if self.value_map is not None:
            data["valueMap"] = dict(self.value_map)
        if self.convert:
            data["convert"] = self.convert
        if self.has_default and not callable(self.default):
            data["default"] = self.default
        if self.description:
            data["description"] = self.description
        return data


RuleLike = Union[MappingRule, Dict[str, Any]]


def _coerce_rule(rule: RuleLike) -> MappingRule:
    return rule if isinstance(rule, MappingRule) else MappingRule.from_dict(rule)


@dataclass
class RuleSet:
    """Named, ordered collection of mapping rules."""
    rule_set_id: str
    name: str
    rules: List[MappingRule] = field(default_factory=list)
    source_system: Optional[str] = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleSet":
        return cls(
            rule_set_id=data.get("ruleSetId", data.get("rule_set_id", "")),
            name=data.get("name", ""),
            rules=[_coerce_rule(r) for r in data.get("rules", [])],
            source_system=data.get("sourceSystem", data.get("source_system")),
            description=data.get("description", ""),
        )

    @classmethod
    def from_json(cls, path: Path) -> "RuleSet":
        """Load a rule set from a JSON file.

        Expected format:
        {
            "ruleSetId": "LN_FI",
            "name": "Infor LN finance to SAP FI",
            "rules": [
                {"source": "t$ccur", "target": "WAERS", "convert": "toUpperCase"},
                {"target": "SourceSystem", "default": "INFOR_LN"}
            ]
        }
        """
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_json(self, path: Path) -> None:
        data = {
            "ruleSetId": self.rule_set_id,
            "name": self.name,
            "sourceSystem": self.source_system,
            "description": self.description,
            "rules": [r.to_dict() for r in self.rules],
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


@dataclass
class ValidationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_rules(rules: Iterable[MappingRule]) -> ValidationReport:
    """Check a rule list for structural errors.

    Per target, at most one rule may read a source and at most one may be
    a pure default; converters must be known.
    """
    errors: List[str] = []
    sourced: Dict[str, int] = {}
    pure_defaults: Dict[str, int] = {}

    for i, rule in enumerate(rules):
        label = f"Rule[{i}]"
        if not rule.target:
            errors.append(f"{label}: missing target field")
            continue
        label = f"Rule[{i}] ({rule.target})"

        mechanisms = [m for m in (rule.value_map is not None, bool(rule.convert), rule.transform is not None) if m]
        if len(mechanisms) > 1:
            errors.append(f"{label}: only one of valueMap, convert, transform may be set")
        if rule.value_map is not None and not isinstance(rule.value_map, dict):
            errors.append(f"{label}: valueMap must be a mapping")
        if rule.convert and rule.convert not in CONVERTERS:
            errors.append(f"{label}: unknown converter '{rule.convert}'")
        if rule.transform is not None and not callable(rule.transform):
            errors.append(f"{label}: transform must be callable")

        if rule.has_source:
            sourced[rule.target] = sourced.get(rule.target, 0) + 1
        else:
            if not rule.has_default and rule.transform is None:
                errors.append(f"{label}: no source, sources, or default defined")
            pure_defaults[rule.target] = pure_defaults.get(rule.target, 0) + 1

    for target, count in sourced.items():
        if count > 1:
            errors.append(f"duplicate target '{target}': {count} rules read a source")
    for target, count in pure_defaults.items():
        if count > 1:
            errors.append(f"duplicate target '{target}': {count} default-only rules")

    return ValidationReport(valid=not errors, errors=errors)


class FieldMappingEngine:
    """Applies a validated rule list to records.

    Args:
        rules: MappingRule objects, dicts, or a RuleSet
        pass_through: copy source fields no rule reads into the output
        strict: raise TransformError when a rule fails instead of emitting None
    """

    def __init__(
        self,
        rules: Union[RuleSet, Iterable[RuleLike]],
        pass_through: bool = False,
        strict: bool = False,
    ):
        if isinstance(rules, RuleSet):
            self.rule_set_id: Optional[str] = rules.rule_set_id
            rule_list = rules.rules
        else:
            self.rule_set_id = None
            rule_list = list(rules)
        self.rules: List[MappingRule] = [_coerce_rule(r) for r in rule_list]
        self.pass_through = pass_through
        self.strict = strict
        self._stats = {"processed": 0, "mapped": 0, "unmapped": 0, "errors": 0}

        report = validate_rules(self.rules)
        if not report.valid:
            raise RuleValidationError(
                f"Invalid mapping rules: {report.errors[0]}"
                + (f" (+{len(report.errors) - 1} more)" if len(report.errors) > 1 else ""),
                details={"errors": report.errors, "ruleSetId": self.rule_set_id},
            )

    def validate(self) -> ValidationReport:
        return validate_rules(self.rules)

    @property
    def targets(self) -> List[str]:
        seen: Dict[str, None] = {}
        for rule in self.rules:
            seen.setdefault(rule.target, None)
        return list(seen)

    def _read_source(self, rule: MappingRule, record: Dict[str, Any]) -> Any:
        if rule.sources:
            parts = ["" if record.get(s) is None else str(record.get(s)) for s in rule.sources]
            return rule.separator.join(parts)
        if rule.source:
            return record.get(rule.source)
        return None

    def _apply_rule(self, rule: MappingRule, record: Dict[str, Any]) -> Any:
        value = self._read_source(rule, record)

        if rule.value_map is not None:
            if value in rule.value_map:
                return rule.value_map[value]
            if value is not None and str(value) in rule.value_map:
                return rule.value_map[str(value)]
            return rule.resolve_default(record) if rule.has_default else value

        if rule.convert:
            result = CONVERTERS[rule.convert](value)
            if (result is None or result == "") and rule.has_default:
                return rule.resolve_default(record)
            return result

        if rule.transform is not None:
            return rule.transform(value)

        if value is not None:
            return value
        return rule.resolve_default(record)

    def apply_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Map one source record to a target record."""
        output: Dict[str, Any] = {}
        read: set = set()

        for rule in self.rules:
            if rule.source:
                read.add(rule.source)
            if rule.sources:
                read.update(rule.sources)
            try:
                output[rule.target] = self._apply_rule(rule, record)
                self._stats["mapped"] += 1
            except Exception as e:
                self._stats["errors"] += 1
                if self.strict:
                    raise TransformError(
                        f"Mapping '{rule.source or rule.target}' -> '{rule.target}' failed: {e}",
                        details={"source": rule.source, "target": rule.target, "ruleSetId": self.rule_set_id},
                        cause=e,
                    )
                logger.warning(f"Mapping error on field {rule.source or rule.target}: {e}")
                output[rule.target] = None

        if self.pass_through:
            for key, value in record.items():
                if key not in read and key not in output:
                    output[key] = value
                    self._stats["unmapped"] += 1

        self._stats["processed"] += 1
        return output

    def apply_records(self, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self.apply_record(r) for r in records]

    def get_stats(self) -> Dict[str, int]:
        return {"totalRules": len(self.rules), **self._stats}

    def reset_stats(self) -> None:
        self._stats = {"processed": 0, "mapped": 0, "unmapped": 0, "errors": 0}

    @classmethod
    def from_legacy(cls, renames: Iterable[str], **kwargs) -> "FieldMappingEngine":
        return cls([MappingRule.from_legacy(s) for s in renames], **kwargs)
