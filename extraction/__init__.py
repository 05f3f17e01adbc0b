"""Forensic extraction: extractors, registry, coverage tracking and the orchestrator."""

from extraction.base import BaseExtractor, ExpectedTable
from extraction.context import CoverageStatus, CoverageTracker, ExtractionContext
from extraction.gap import GapAnalyzer
from extraction.orchestrator import ExtractionResult, ForensicOrchestrator
from extraction.registry import ExtractorRegistry

__all__ = [
    "BaseExtractor",
    "CoverageStatus",
    "CoverageTracker",
    "ExpectedTable",
    "ExtractionContext",
    "ExtractionResult",
    "ExtractorRegistry",
    "ForensicOrchestrator",
    "GapAnalyzer",
]
