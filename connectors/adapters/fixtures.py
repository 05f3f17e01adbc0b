"""Inline fixture tables served by adapters in mock mode.

SAP tables without an explicit fixture are synthesized: ``SAP_MOCK_ROWS``
rows whose values are derived from the requested field names, so every
table an extractor asks for answers with a known row count.
"""

from typing import Any, Dict, List, Optional

SAP_MOCK_ROWS = 5
SAP_DEFAULT_FIELDS = ("MANDT", "KEY", "TEXT")

SAP_TABLES: Dict[str, List[Dict[str, Any]]] = {
    "T000": [
        {"MANDT": "000", "MTEXT": "SAP AG Konzern", "ORT01": "Walldorf", "MWAER": "EUR"},
        {"MANDT": "100", "MTEXT": "Production", "ORT01": "Chicago", "MWAER": "USD"},
        {"MANDT": "200", "MTEXT": "Quality", "ORT01": "Chicago", "MWAER": "USD"},
    ],
    "T001": [
        {"BUKRS": "1000", "BUTXT": "Acme US", "ORT01": "Chicago", "LAND1": "US", "WAERS": "USD", "KTOPL": "INT"},
        {"BUKRS": "2000", "BUTXT": "Acme DE", "ORT01": "Munich", "LAND1": "DE", "WAERS": "EUR", "KTOPL": "INT"},
    ],
}

SAP_SYSTEM_INFO = {
    "systemId": "S4H",
    "systemType": "SAP S/4HANA",
    "release": "2023",
    "hostname": "sap-prod-01.example.com",
    "client": "100",
    "database": "HANA 2.0 SPS06",
    "kernel": "793",
    "operatingSystem": "Linux",
    "unicode": True,
    "modules": ["FI", "CO", "MM", "SD", "PP", "QM", "PM", "WM", "HR"],
}

LN_TABLES: Dict[str, List[Dict[str, Any]]] = {
    "tccom000": [
        {"t$comp": "100", "t$dsca": "Main Company", "t$ccur": "USD", "t$ctry": "US"},
    ],
    "tccom100": [
        {"t$bpid": "BP0000001", "t$nama": "Acme Manufacturing", "t$seak": "ACME", "t$lncc": "US",
         "t$lnci": "Chicago", "t$ccur": "USD", "t$prst": "2"},
        {"t$bpid": "BP0000002", "t$nama": "Global Industries", "t$seak": "GLOBAL", "t$lncc": "DE",
         "t$lnci": "Munich", "t$ccur": "EUR", "t$prst": "2"},
        {"t$bpid": "BP0000003", "t$nama": "Steel Works Inc", "t$seak": "STEEL", "t$lncc": "US",
         "t$lnci": "Pittsburgh", "t$ccur": "USD", "t$prst": "2"},
        {"t$bpid": "BP0000004", "t$nama": "", "t$seak": "", "t$lncc": "US",
         "t$lnci": "", "t$ccur": "USD", "t$prst": "1"},
    ],
    "tccom110": [
        {"t$ofbp": "BP0000001", "t$cpay": "N30", "t$crlr": 50000},
        {"t$ofbp": "BP0000002", "t$cpay": "N45", "t$crlr": 75000},
    ],
    "tccom120": [
        {"t$otbp": "BP0000003", "t$cpay": "N30", "t$ccur": "USD"},
    ],
    "tcibd001": [
        {"t$item": "ITEM-001", "t$dsca": "Steel Plate 4mm", "t$citg": "01", "t$ctyp": "3", "t$cuni": "KG"},
        {"t$item": "ITEM-002", "t$dsca": "Copper Wire 2mm", "t$citg": "02", "t$ctyp": "3", "t$cuni": "M"},
        {"t$item": "ITEM-003", "t$dsca": "Aluminum Sheet 3mm", "t$citg": "01", "t$ctyp": "3", "t$cuni": "KG"},
        {"t$item": "ITEM-004", "t$dsca": "Pump Assembly", "t$citg": "03", "t$ctyp": "1", "t$cuni": "PCS"},
        {"t$item": "ITEM-005", "t$dsca": "", "t$citg": "", "t$ctyp": "2", "t$cuni": "PCS"},
    ],
    "tcibd003": [
        {"t$item": "ITEM-001", "t$basu": "KG", "t$unit": "TON", "t$conv": 0.001},
    ],
    "tfgld008": [
        {"t$leac": "1000", "t$desc": "Cash", "t$actp": "1", "t$ccur": "USD"},
        {"t$leac": "1100", "t$desc": "Accounts Receivable", "t$actp": "1", "t$ccur": "USD"},
        {"t$leac": "2000", "t$desc": "Accounts Payable", "t$actp": "1", "t$ccur": "USD"},
        {"t$leac": "4000", "t$desc": "Revenue", "t$actp": "2", "t$ccur": "USD"},
        {"t$leac": "5000", "t$desc": "Cost of Goods Sold", "t$actp": "2", "t$ccur": "USD"},
        {"t$leac": "6000", "t$desc": "Operating Expenses", "t$actp": "2", "t$ccur": "USD"},
    ],
    "tfgld010": [
        {"t$dtyp": 1, "t$dimx": "CC100", "t$desc": "Administration"},
        {"t$dtyp": 1, "t$dimx": "CC200", "t$desc": "Production"},
    ],
    "tfgld106": [
        {"t$otyp": "NOR", "t$odoc": 5000001, "t$leac": "1000", "t$dbcr": "D", "t$amnt": 12500.50,
         "t$year": 2024, "t$perd": 1, "t$ccur": "USD", "t$cpnb": 100},
        {"t$otyp": "NOR", "t$odoc": 5000001, "t$leac": "4000", "t$dbcr": "C", "t$amnt": 12500.50,
         "t$year": 2024, "t$perd": 1, "t$ccur": "USD", "t$cpnb": 100},
        {"t$otyp": "NOR", "t$odoc": 5000002, "t$leac": "6000", "t$dbcr": "D", "t$amnt": 830.00,
         "t$year": 2024, "t$perd": 2, "t$ccur": "USD", "t$cpnb": 100},
        {"t$otyp": "NOR", "t$odoc": 5000002, "t$leac": "2000", "t$dbcr": "C", "t$amnt": 830.00,
         "t$year": 2024, "t$perd": 2, "t$ccur": "USD", "t$cpnb": 100},
    ],
    "tibom010": [
        {"t$mitm": "ITEM-004", "t$pono": 10, "t$sitm": "ITEM-001", "t$qana": 2.5},
        {"t$mitm": "ITEM-004", "t$pono": 20, "t$sitm": "ITEM-002", "t$qana": 4.0},
    ],
    "tirou102": [
        {"t$mitm": "ITEM-004", "t$opno": 10, "t$cwoc": "WC-ASM", "t$prte": 0.5},
    ],
    "tisfc001": [
        {"t$pdno": "PRD000001", "t$mitm": "ITEM-004", "t$qrdr": 50, "t$osta": "5"},
        {"t$pdno": "PRD000002", "t$mitm": "ITEM-004", "t$qrdr": 20, "t$osta": "3"},
    ],
    "tcemm030": [
        {"t$cpac": "tc", "t$cmod": "Common", "t$vers": "10.7.0"},
        {"t$cpac": "tf", "t$cmod": "Finance", "t$vers": "10.7.0"},
        {"t$cpac": "ti", "t$cmod": "Manufacturing", "t$vers": "10.7.0"},
    ],
}

M3_TABLES: Dict[str, List[Dict[str, Any]]] = {
    "OCUSMA": [
        {"OKCONO": 100, "OKCUNO": "C10001", "OKCUNM": "Acme Manufacturing", "OKCSCD": "US", "OKCUCD": "USD", "OKSTAT": "20"},
        {"OKCONO": 100, "OKCUNO": "C10002", "OKCUNM": "Nordic Tools AB", "OKCSCD": "SE", "OKCUCD": "SEK", "OKSTAT": "20"},
        {"OKCONO": 100, "OKCUNO": "C10003", "OKCUNM": "Blocked Customer", "OKCSCD": "US", "OKCUCD": "USD", "OKSTAT": "90"},
    ],
    "MITMAS": [
        {"MMCONO": 100, "MMITNO": "M3-ITEM-01", "MMITDS": "Hydraulic Valve", "MMUNMS": "PCS", "MMITTY": "10", "MMSTAT": "20"},
        {"MMCONO": 100, "MMITNO": "M3-ITEM-02", "MMITDS": "Valve Body Casting", "MMUNMS": "PCS", "MMITTY": "30", "MMSTAT": "20"},
        {"MMCONO": 100, "MMITNO": "M3-ITEM-03", "MMITDS": "Seal Kit", "MMUNMS": "SET", "MMITTY": "30", "MMSTAT": "20"},
    ],
    "MITBAL": [
        {"MBCONO": 100, "MBWHLO": "100", "MBITNO": "M3-ITEM-01", "MBSTQT": 120},
        {"MBCONO": 100, "MBWHLO": "100", "MBITNO": "M3-ITEM-02", "MBSTQT": 400},
    ],
    "FSLEDG": [
        {"ESCONO": 100, "ESDIVI": "AAA", "ESVONO": 1001, "ESAIT1": "1000", "ESCUAM": 2500.0, "ESACDT": 20240115},
        {"ESCONO": 100, "ESDIVI": "AAA", "ESVONO": 1001, "ESAIT1": "4000", "ESCUAM": -2500.0, "ESACDT": 20240115},
    ],
    "FCHACC": [
        {"AICONO": 100, "AIAITM": "1000", "AIAITX": "Cash", "AIAITT": "1"},
        {"AICONO": 100, "AIAITM": "4000", "AIAITX": "Sales", "AIAITT": "2"},
    ],
}

CSI_TABLES: Dict[str, List[Dict[str, Any]]] = {
    "SLItems": [
        {"Item": "ITEM-001", "Description": "Steel Bolt M10", "UM": "EA", "Stat": "A", "ProductCode": "HW"},
        {"Item": "ITEM-002", "Description": "Copper Pipe 2in", "UM": "FT", "Stat": "A", "ProductCode": "PL"},
        {"Item": "ITEM-003", "Description": "Aluminum Sheet 4x8", "UM": "EA", "Stat": "A", "ProductCode": "RAW"},
    ],
    "SLItemwhses": [
        {"Item": "ITEM-001", "Whse": "MAIN", "QtyOnHand": 1500},
    ],
    "SLCustomers": [
        {"CustNum": "C-100", "Name": "Acme Manufacturing", "CurrCode": "USD", "Country": "US"},
        {"CustNum": "C-200", "Name": "Global Industries", "CurrCode": "EUR", "Country": "DE"},
    ],
    "SLCustaddrs": [
        {"CustNum": "C-100", "CustSeq": 0, "City": "Chicago", "State": "IL"},
    ],
}

LAWSON_TABLES: Dict[str, List[Dict[str, Any]]] = {
    "GLAccount": [
        {"ACCOUNT": "1000", "DESCRIPTION": "Cash", "ACCOUNT-TYPE": "B", "CURRENCY": "USD"},
        {"ACCOUNT": "4000", "DESCRIPTION": "Revenue", "ACCOUNT-TYPE": "R", "CURRENCY": "USD"},
        {"ACCOUNT": "6000", "DESCRIPTION": "Salaries", "ACCOUNT-TYPE": "P", "CURRENCY": "USD"},
    ],
    "GLTransaction": [
        {"COMPANY": 10, "ACCOUNT": "1000", "AMOUNT": 1200.0, "POSTING-DATE": "2024-03-31"},
        {"COMPANY": 10, "ACCOUNT": "4000", "AMOUNT": -1200.0, "POSTING-DATE": "2024-03-31"},
    ],
    "SecurityClass": [
        {"SECURITY-CLASS": "GLADMIN", "DESCRIPTION": "GL administrators"},
        {"SECURITY-CLASS": "APCLERK", "DESCRIPTION": "AP clerks"},
    ],
    "UserSecurity": [
        {"USER": "jdoe", "SECURITY-CLASS": "GLADMIN"},
        {"USER": "msmith", "SECURITY-CLASS": "APCLERK"},
        {"USER": "rjohnson", "SECURITY-CLASS": "GLADMIN"},
    ],
}


def synthesize_rows(fields: Optional[List[str]], count: int = SAP_MOCK_ROWS) -> List[Dict[str, Any]]:
    names = list(fields or SAP_DEFAULT_FIELDS)
    return [{name: f"{name}-{index + 1:03d}" for name in names} for index in range(count)]


def project(rows: List[Dict[str, Any]], fields: Optional[List[str]]) -> List[Dict[str, Any]]:
    """Keep only ``fields`` (all columns when ``fields`` is empty)."""
    if not fields:
        return [dict(row) for row in rows]
    return [{name: row[name] for name in fields if name in row} for row in rows]
