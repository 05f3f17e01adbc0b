"""SAP basis, repository and security extractors."""

from collections import Counter
from typing import Any, Dict, List

from extraction.base import BaseExtractor, ExpectedTable

CUSTOM_PREFIXES = ("Z", "Y", "/")


def _is_custom(name: Any) -> bool:
    return str(name or "").upper().startswith(CUSTOM_PREFIXES)


class SystemInfoExtractor(BaseExtractor):
    extractor_id = "SYSTEM_INFO"
    name = "System Information"
    module = "BASIS"
    category = "system"
    expected_tables = (
        ExpectedTable("T000", "Clients", critical=True),
        ExpectedTable("CVERS", "Installed software components", fields=("COMPONENT", "RELEASE", "EXTRELEASE")),
    )

    async def _extract_live(self) -> Dict[str, Any]:
        payload = self.summarize(await self._read_expected_tables())
        payload["systemInfo"] = self.context.system_info or await self.context.adapter.get_system_info()
        return payload

    _extract_mock = _extract_live

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["clients"] = [row.get("MANDT") for row in tables.get("T000", [])]
        payload["components"] = [row.get("COMPONENT") for row in tables.get("CVERS", [])]
        return payload


class DataDictionaryExtractor(BaseExtractor):
    """Custom (Z/Y) objects in the repository are what a migration has to carry over by hand."""

    extractor_id = "DATA_DICTIONARY"
    name = "Data Dictionary"
    module = "BASIS"
    category = "repository"
    expected_tables = (
        ExpectedTable("DD02L", "Table definitions", critical=True, fields=("TABNAME", "TABCLASS", "CONTFLAG")),
        ExpectedTable("DD03L", "Table fields", fields=("TABNAME", "FIELDNAME", "DATATYPE", "LENG"), max_rows=50000),
        ExpectedTable("TADIR", "Repository objects", critical=True, fields=("PGMID", "OBJECT", "OBJ_NAME", "DEVCLASS")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        definitions = tables.get("DD02L", [])
        custom_tables = [row.get("TABNAME") for row in definitions if _is_custom(row.get("TABNAME"))]
        custom_objects = [row for row in tables.get("TADIR", []) if _is_custom(row.get("OBJ_NAME"))]
        payload["tableCount"] = len(definitions)
        payload["customTables"] = custom_tables
        payload["customObjectCount"] = len(custom_objects)
        if custom_objects:
            self._flag_for_validation(
                f"{len(custom_objects)} custom repository object(s) need a keep/retire decision"
            )
        return payload


class RfcDestinationExtractor(BaseExtractor):
    extractor_id = "BASIS_RFC"
    name = "RFC Destinations"
    module = "BASIS"
    category = "interface"
    expected_tables = (
        ExpectedTable("RFCDES", "RFC destinations", critical=True, fields=("RFCDEST", "RFCTYPE", "RFCOPTIONS")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        destinations = tables.get("RFCDES", [])
        payload["rfcDestinations"] = destinations
        payload["byType"] = dict(Counter(str(row.get("RFCTYPE", "")) for row in destinations))
        return payload


class IdocExtractor(BaseExtractor):
    extractor_id = "BASIS_IDOC"
    name = "IDoc Partner Profiles"
    module = "BASIS"
    category = "interface"
    expected_tables = (
        ExpectedTable("EDP13", "Outbound partner profiles", critical=True, fields=("RCVPRN", "RCVPRT", "MESTYP", "IDOCTYP")),
        ExpectedTable("EDP21", "Inbound partner profiles", fields=("SNDPRN", "SNDPRT", "MESTYP", "EVCODE")),
        ExpectedTable("EDIDC", "IDoc control records", fields=("DOCNUM", "MESTYP", "STATUS", "CREDAT"), max_rows=1000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        message_types = {row.get("MESTYP") for row in tables.get("EDP13", []) + tables.get("EDP21", [])}
        payload["messageTypes"] = sorted(str(m) for m in message_types if m)
        return payload


class BatchJobExtractor(BaseExtractor):
    extractor_id = "BASIS_BATCH_JOBS"
    name = "Background Jobs"
    module = "BASIS"
    category = "operations"
    expected_tables = (
        ExpectedTable("TBTCO", "Job headers", critical=True, fields=("JOBNAME", "JOBCOUNT", "STATUS", "SDLUNAME"), max_rows=5000),
        ExpectedTable("TBTCP", "Job steps", fields=("JOBNAME", "JOBCOUNT", "STEPCOUNT", "PROGNAME"), max_rows=5000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        jobs = tables.get("TBTCO", [])
        payload["jobCount"] = len(jobs)
        payload["customPrograms"] = sorted(
            {str(row.get("PROGNAME")) for row in tables.get("TBTCP", []) if _is_custom(row.get("PROGNAME"))}
        )
        return payload


class SecurityRoleExtractor(BaseExtractor):
    extractor_id = "SECURITY_ROLES"
    name = "Roles and Users"
    module = "BASIS"
    category = "security"
    expected_tables = (
        ExpectedTable("AGR_DEFINE", "Role definitions", critical=True, fields=("AGR_NAME", "PARENT_AGR")),
        ExpectedTable("AGR_USERS", "Role assignments", fields=("AGR_NAME", "UNAME", "FROM_DAT", "TO_DAT")),
        ExpectedTable("USR02", "User logon data", critical=True, fields=("BNAME", "USTYP", "GLTGB", "UFLAG")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["roleCount"] = len(tables.get("AGR_DEFINE", []))
        payload["userCount"] = len(tables.get("USR02", []))
        payload["customRoles"] = [r.get("AGR_NAME") for r in tables.get("AGR_DEFINE", []) if _is_custom(r.get("AGR_NAME"))]
        return payload


class ChangeDocumentExtractor(BaseExtractor):
    extractor_id = "CHANGE_DOCUMENTS"
    name = "Change Documents"
    module = "BASIS"
    category = "process"
    expected_tables = (
        ExpectedTable("CDHDR", "Change document headers", critical=True,
                      fields=("OBJECTCLAS", "OBJECTID", "CHANGENR", "USERNAME", "UDATE", "TCODE"), max_rows=5000),
        ExpectedTable("CDPOS", "Change document items",
                      fields=("OBJECTCLAS", "OBJECTID", "CHANGENR", "TABNAME", "FNAME", "CHNGIND"), max_rows=5000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        headers = tables.get("CDHDR", [])
        payload["headers"] = headers
        payload["byObjectClass"] = dict(Counter(str(h.get("OBJECTCLAS", "")) for h in headers))
        if not headers:
            self._flag_for_validation("No change documents available; process mining will be limited")
        return payload


class TransportExtractor(BaseExtractor):
    extractor_id = "TRANSPORTS"
    name = "Transport Requests"
    module = "BASIS"
    category = "repository"
    expected_tables = (
        ExpectedTable("E070", "Transport headers", critical=True, fields=("TRKORR", "TRFUNCTION", "TRSTATUS", "AS4USER"), max_rows=5000),
        ExpectedTable("E071", "Transport objects", fields=("TRKORR", "PGMID", "OBJECT", "OBJ_NAME"), max_rows=20000),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        payload["transportCount"] = len(tables.get("E070", []))
        return payload


class BwExtractorCatalog(BaseExtractor):
    extractor_id = "BW_EXTRACTORS"
    name = "BW DataSources"
    module = "BW"
    category = "interface"
    expected_tables = (
        ExpectedTable("ROOSOURCE", "DataSources", critical=True, fields=("OLTPSOURCE", "OBJVERS", "TYPE", "APPLNM")),
    )

    def summarize(self, tables):
        payload = super().summarize(tables)
        sources: List[Dict[str, Any]] = tables.get("ROOSOURCE", [])
        payload["customDataSources"] = [s.get("OLTPSOURCE") for s in sources if _is_custom(s.get("OLTPSOURCE"))]
        return payload


SAP_BASIS_EXTRACTORS = [
    SystemInfoExtractor,
    DataDictionaryExtractor,
    RfcDestinationExtractor,
    IdocExtractor,
    BatchJobExtractor,
    SecurityRoleExtractor,
    ChangeDocumentExtractor,
    TransportExtractor,
    BwExtractorCatalog,
]
