"""ERP Connectors - protocol clients, source adapters and target loaders.

Layout:
- http_client / auth: aiohttp transport with retry, circuit breaking, CSRF
- odata/: SAP Gateway OData v2/v4 client, $batch, $metadata
- rfc/: pooled RFC client, RFC_READ_TABLE reader, generic function caller
- infor/: ION, M3 MI, IDO, Landmark and direct-database clients
- adapters/: one SourceAdapter per source ERP, registered by name
- connection / manager: named SAP connections with health telemetry
- target: loaders that write migrated records to the target system

To add a new source ERP:
1. Subclass SourceAdapter in adapters/
2. Register it with @register_adapter("NAME")
3. Import it in adapters/__init__.py
"""

from connectors.connection import Connection, ConnectionProfile, ConnectionStatus
from connectors.manager import ConnectionManager
from connectors.target import DryRunTarget, LoadResult, ODataTarget, TargetLoader

__all__ = [
    # Connections
    "Connection",
    "ConnectionProfile",
    "ConnectionStatus",
    "ConnectionManager",

    # Target loaders
    "TargetLoader",
    "LoadResult",
    "DryRunTarget",
    "ODataTarget",
]
