"""Named rule sets for source-specific field mapping."""

from typing import Dict, List

from core.errors import ConfigurationError
from core.mapping import RuleSet
from migration.rules.ln_fi import LN_FI_RULES
from migration.rules.ln_mm import LN_MM_RULES
from migration.rules.ln_pp import LN_PP_RULES
from migration.rules.ln_sd import LN_SD_RULES
from migration.rules.m3_fi import M3_FI_RULES
from migration.rules.m3_mm import M3_MM_RULES
from migration.rules.m3_pp import M3_PP_RULES
from migration.rules.m3_sd import M3_SD_RULES

RULE_SETS: Dict[str, RuleSet] = {
    rule_set.rule_set_id: rule_set
    for rule_set in (
        LN_FI_RULES, LN_MM_RULES, LN_PP_RULES, LN_SD_RULES,
        M3_FI_RULES, M3_MM_RULES, M3_PP_RULES, M3_SD_RULES,
    )
}


def get_rule_set(rule_set_id: str) -> RuleSet:
    try:
        return RULE_SETS[rule_set_id]
    except KeyError:
        raise ConfigurationError(
            f"Unknown rule set: {rule_set_id}",
            details={"ruleSetId": rule_set_id, "available": list_rule_sets()},
        ) from None


def list_rule_sets() -> List[str]:
    return sorted(RULE_SETS)


__all__ = [
    "LN_FI_RULES",
    "LN_MM_RULES",
    "LN_PP_RULES",
    "LN_SD_RULES",
    "M3_FI_RULES",
    "M3_MM_RULES",
    "M3_PP_RULES",
    "M3_SD_RULES",
    "RULE_SETS",
    "get_rule_set",
    "list_rule_sets",
]
