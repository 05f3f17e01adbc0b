"""Source adapters.

Importing this package registers every built-in adapter.
"""

from connectors.adapters.base import (
    SourceAdapter,
    create_adapter,
    list_available_adapters,
    register_adapter,
)
from connectors.adapters.csi import CSIAdapter
from connectors.adapters.lawson import LawsonAdapter
from connectors.adapters.ln import LNAdapter
from connectors.adapters.m3 import TABLE_PROGRAM_MAP, M3Adapter
from connectors.adapters.sap import SapAdapter

__all__ = [
    "SourceAdapter",
    "register_adapter",
    "create_adapter",
    "list_available_adapters",
    "SapAdapter",
    "LNAdapter",
    "M3Adapter",
    "TABLE_PROGRAM_MAP",
    "CSIAdapter",
    "LawsonAdapter",
]
