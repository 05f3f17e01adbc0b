"""Core data models - source-neutral canonical types.

Canonical entities sit between every source ERP and the target mapping
rules; ``source_mapping`` turns raw source rows into them.
"""

from core.models.canonical import (
    CanonicalBase,
    ChartOfAccounts,
    CostCenter,
    Customer,
    ENTITY_TYPES,
    GlEntry,
    Item,
    Party,
    Vendor,
)
from core.models.refs import (
    AuditEvent,
    AuditSeverity,
    DataReference,
    ReconciliationReport,
)
from core.models.source_mapping import get_mappings, get_source_systems, to_canonical

__all__ = [
    # Canonical entities
    "CanonicalBase",
    "Item",
    "Party",
    "Customer",
    "Vendor",
    "ChartOfAccounts",
    "CostCenter",
    "GlEntry",
    "ENTITY_TYPES",

    # Source mappings
    "get_source_systems",
    "get_mappings",
    "to_canonical",

    # References
    "DataReference",
    "ReconciliationReport",
    "AuditEvent",
    "AuditSeverity",
]
