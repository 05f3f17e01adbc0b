"""Migration objects: one class per business object, run in dependency waves."""

from migration.objects.base import BaseMigrationObject, MigrationContext, MigrationObjectResult
from migration.objects.configuration import CONFIGURATION_OBJECTS, ConfigurationObject
from migration.objects.finance import FINANCE_OBJECTS
from migration.objects.infor_ln import INFOR_LN_OBJECTS
from migration.objects.infor_m3 import INFOR_M3_OBJECTS
from migration.objects.logistics import LOGISTICS_OBJECTS
from migration.objects.master_data import MASTER_DATA_OBJECTS
from migration.objects.registry import MigrationObjectRegistry

BUILTIN_OBJECTS = (
    CONFIGURATION_OBJECTS
    + FINANCE_OBJECTS
    + MASTER_DATA_OBJECTS
    + LOGISTICS_OBJECTS
    + INFOR_LN_OBJECTS
    + INFOR_M3_OBJECTS
)

__all__ = [
    "BUILTIN_OBJECTS",
    "BaseMigrationObject",
    "ConfigurationObject",
    "MigrationContext",
    "MigrationObjectRegistry",
    "MigrationObjectResult",
]
