"""Extractor registry.

An explicit value built at startup and handed to the orchestrator:

    registry = ExtractorRegistry.with_builtins()
    registry.list_by_module("FI")
"""

from typing import Any, Dict, Iterable, List, Optional, Type

from core.errors import ConfigurationError
from extraction.base import BaseExtractor


class ExtractorRegistry:
    """Extractor classes by id. Write once at startup, read-only afterward."""

    def __init__(self, extractors: Optional[Iterable[Type[BaseExtractor]]] = None):
        self._extractors: Dict[str, Type[BaseExtractor]] = {}
        for cls in extractors or ():
            self.register(cls)

    def register(self, cls: Type[BaseExtractor]) -> Type[BaseExtractor]:
        extractor_id = getattr(cls, "extractor_id", "")
        if not extractor_id:
            raise ConfigurationError(f"{cls.__name__} has no extractor_id", details={"extractor": cls.__name__})
        if extractor_id in self._extractors:
            raise ConfigurationError(
                f"Extractor already registered: {extractor_id}",
                details={"extractorId": extractor_id, "existing": self._extractors[extractor_id].__name__},
            )
        self._extractors[extractor_id] = cls
        return cls

    def get(self, extractor_id: str) -> Type[BaseExtractor]:
        try:
            return self._extractors[extractor_id]
        except KeyError:
            raise ConfigurationError(
                f"Unknown extractor: {extractor_id}. Available: {sorted(self._extractors)}",
                details={"extractorId": extractor_id},
            ) from None

    def has(self, extractor_id: str) -> bool:
        return extractor_id in self._extractors

    def list(self) -> List[Type[BaseExtractor]]:
        return list(self._extractors.values())

    def ids(self) -> List[str]:
        return list(self._extractors)

    def list_by_category(self, category: str) -> List[Type[BaseExtractor]]:
        return [cls for cls in self._extractors.values() if cls.category == category]

    def list_by_module(self, module: str) -> List[Type[BaseExtractor]]:
        module = module.upper()
        return [cls for cls in self._extractors.values() if cls.module.upper() == module]

    def list_by_source_system(self, source_system: str) -> List[Type[BaseExtractor]]:
        source_system = source_system.upper()
        return [cls for cls in self._extractors.values() if cls.source_system.upper() == source_system]

    def descriptors(self) -> List[Dict[str, Any]]:
        return [cls.descriptor() for cls in self._extractors.values()]

    def __len__(self) -> int:
        return len(self._extractors)

    def __contains__(self, extractor_id: str) -> bool:
        return extractor_id in self._extractors

    @classmethod
    def with_builtins(cls) -> "ExtractorRegistry":
        """Registry holding every built-in SAP and Infor extractor."""
        from extraction.extractors import BUILTIN_EXTRACTORS

        return cls(BUILTIN_EXTRACTORS)
