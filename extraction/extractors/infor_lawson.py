"""Infor Lawson (Landmark) extractors."""

from collections import Counter

from extraction.base import BaseExtractor, ExpectedTable


class LawsonGLExtractor(BaseExtractor):
    extractor_id = "LAWSON_GL"
    name = "Lawson General Ledger"
    module = "FI"
    category = "transactional"
    source_system = "INFOR_LAWSON"
    expected_tables = (
        ExpectedTable("GLAccount", "GL accounts", critical=True),
        ExpectedTable("GLTransaction", "GL transactions", critical=True, max_rows=10000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        accounts = tables.get("GLAccount", [])
        payload["accountCount"] = len(accounts)
        payload["byAccountType"] = dict(Counter(str(a.get("ACCOUNT-TYPE", "")) for a in accounts))
        balance = round(sum(float(t.get("AMOUNT") or 0) for t in tables.get("GLTransaction", [])), 2)
        payload["transactionBalance"] = balance
        if balance != 0:
            self._flag_for_validation(f"GLTransaction does not net to zero (balance {balance})")
        return payload


class LawsonSecurityExtractor(BaseExtractor):
    extractor_id = "LAWSON_SECURITY"
    name = "Lawson Security Classes"
    module = "BASIS"
    category = "security"
    source_system = "INFOR_LAWSON"
    expected_tables = (
        ExpectedTable("SecurityClass", "Security classes", critical=True),
        ExpectedTable("UserSecurity", "User assignments"),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        assignments = tables.get("UserSecurity", [])
        payload["usersByClass"] = dict(Counter(str(a.get("SECURITY-CLASS", "")) for a in assignments))
        defined = {c.get("SECURITY-CLASS") for c in tables.get("SecurityClass", [])}
        orphans = sorted({a.get("SECURITY-CLASS") for a in assignments} - defined)
        if orphans:
            self._flag_for_validation(f"User assignment(s) to undefined security class(es): {', '.join(orphans)}")
        return payload


INFOR_LAWSON_EXTRACTORS = [LawsonGLExtractor, LawsonSecurityExtractor]
