"""SAP HCM extractors.

Personnel tables hold personal data; reads are limited to the fields a
migration needs to size and map the employee population.
"""

from collections import Counter

from extraction.base import BaseExtractor, ExpectedTable


class EmployeeExtractor(BaseExtractor):
    extractor_id = "HR_EMPLOYEES"
    name = "Employees"
    module = "HR"
    category = "masterdata"
    expected_tables = (
        ExpectedTable("PA0001", "Organizational assignment", critical=True,
                      fields=("PERNR", "BEGDA", "ENDDA", "BUKRS", "WERKS", "PERSG", "ORGEH"), max_rows=20000),
        ExpectedTable("PA0002", "Personal data", fields=("PERNR", "BEGDA", "ENDDA", "NACHN", "VORNA"), max_rows=20000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        assignments = tables.get("PA0001", [])
        payload["count"] = len({row.get("PERNR") for row in assignments})
        payload["byCompanyCode"] = dict(Counter(str(row.get("BUKRS", "")) for row in assignments))
        if assignments:
            self._flag_for_validation("Personnel data extracted; confirm data protection approval before migration")
        return payload


class OrgStructureExtractor(BaseExtractor):
    extractor_id = "HR_ORG_STRUCTURE"
    name = "Organizational Structure"
    module = "HR"
    expected_tables = (
        ExpectedTable("HRP1000", "Object names", critical=True, fields=("PLVAR", "OTYPE", "OBJID", "STEXT")),
        ExpectedTable("HRP1001", "Relationships", fields=("OTYPE", "OBJID", "RSIGN", "RELAT", "SOBID")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["byObjectType"] = dict(Counter(str(r.get("OTYPE", "")) for r in tables.get("HRP1000", [])))
        return payload


SAP_HR_EXTRACTORS = [EmployeeExtractor, OrgStructureExtractor]
