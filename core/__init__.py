"""Core module - source-neutral runtime pieces.

Errors, resilience primitives, configuration, observability, audit,
checkpoint storage, the progress bus, the field-mapping engine and the
canonical model. Nothing here knows about a specific ERP protocol; that
belongs in /connectors/.
"""

__version__ = "1.0.0"
