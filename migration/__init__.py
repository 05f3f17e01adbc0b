"""Migration pipeline: planning, field mapping, quality, load and reconciliation."""

from migration.bridge import MigrationBridge, MigrationPlan
from migration.dependency_graph import DEPENDENCIES, DependencyGraph
from migration.objects import BaseMigrationObject, MigrationContext, MigrationObjectRegistry
from migration.quality import DataQualityChecker, QualityReport
from migration.reconciliation import ReconciliationStatus, reconcile

__all__ = [
    "DEPENDENCIES",
    "BaseMigrationObject",
    "DataQualityChecker",
    "DependencyGraph",
    "MigrationBridge",
    "MigrationContext",
    "MigrationObjectRegistry",
    "MigrationPlan",
    "QualityReport",
    "ReconciliationStatus",
    "reconcile",
]
