"""OData V2/V4 connector."""

from connectors.odata.batch import BatchRequest, BatchResult, build_batch, parse_batch_response
from connectors.odata.client import ODataClient, extract_results
from connectors.odata.metadata import ServiceMetadata, parse_metadata

__all__ = [
    "ODataClient",
    "extract_results",
    "BatchRequest",
    "BatchResult",
    "build_batch",
    "parse_batch_response",
    "ServiceMetadata",
    "parse_metadata",
]
