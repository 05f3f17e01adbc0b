"""Infor protocol clients: ION, M3 MI, CSI IDO, Lawson Landmark and SQL."""

from connectors.infor.db_adapter import InforDbAdapter
from connectors.infor.ido_client import IDOClient, parse_ido_items
from connectors.infor.ion_client import IONClient
from connectors.infor.landmark_client import LandmarkClient
from connectors.infor.m3_api_client import M3ApiClient, flatten_mi_record

__all__ = [
    "IONClient",
    "M3ApiClient",
    "flatten_mi_record",
    "IDOClient",
    "parse_ido_items",
    "LandmarkClient",
    "InforDbAdapter",
]
