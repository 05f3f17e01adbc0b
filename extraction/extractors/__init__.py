"""Built-in extractor catalog for SAP and the Infor product lines."""

from extraction.extractors.infor_csi import INFOR_CSI_EXTRACTORS
from extraction.extractors.infor_lawson import INFOR_LAWSON_EXTRACTORS
from extraction.extractors.infor_ln import INFOR_LN_EXTRACTORS
from extraction.extractors.infor_m3 import INFOR_M3_EXTRACTORS
from extraction.extractors.sap_basis import SAP_BASIS_EXTRACTORS
from extraction.extractors.sap_finance import SAP_FINANCE_EXTRACTORS
from extraction.extractors.sap_hr import SAP_HR_EXTRACTORS
from extraction.extractors.sap_logistics import SAP_LOGISTICS_EXTRACTORS

BUILTIN_EXTRACTORS = (
    SAP_BASIS_EXTRACTORS
    + SAP_FINANCE_EXTRACTORS
    + SAP_LOGISTICS_EXTRACTORS
    + SAP_HR_EXTRACTORS
    + INFOR_LN_EXTRACTORS
    + INFOR_M3_EXTRACTORS
    + INFOR_CSI_EXTRACTORS
    + INFOR_LAWSON_EXTRACTORS
)

__all__ = [
    "BUILTIN_EXTRACTORS",
    "SAP_BASIS_EXTRACTORS",
    "SAP_FINANCE_EXTRACTORS",
    "SAP_LOGISTICS_EXTRACTORS",
    "SAP_HR_EXTRACTORS",
    "INFOR_LN_EXTRACTORS",
    "INFOR_M3_EXTRACTORS",
    "INFOR_CSI_EXTRACTORS",
    "INFOR_LAWSON_EXTRACTORS",
]
