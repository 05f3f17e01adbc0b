"""Field-mapping engine and named converters."""

from core.mapping.converters import CONVERTERS, get_converter
from core.mapping.engine import (
    NO_DEFAULT,
    FieldMappingEngine,
    MappingRule,
    RuleSet,
    ValidationReport,
    validate_rules,
)

__all__ = [
    "CONVERTERS",
    "get_converter",
    "NO_DEFAULT",
    "FieldMappingEngine",
    "MappingRule",
    "RuleSet",
    "ValidationReport",
    "validate_rules",
]
