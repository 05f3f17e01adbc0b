"""Migration object registry and wave runner.

    registry = MigrationObjectRegistry.with_builtins()
    report = await registry.run_all(MigrationContext(mode="mock"))
    report["stats"]  # {"total": 20, "completed": 20, "failed": 0, ...}
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Type, Union

from core.errors import ConfigurationError, MigrationObjectError, is_fatal_error
from core.observability.logging import get_logger, with_correlation
from core.progress import EventType
from migration.dependency_graph import DependencyGraph
from migration.objects.base import BaseMigrationObject, MigrationContext

logger = get_logger(__name__)

ObjectLike = Union[BaseMigrationObject, Type[BaseMigrationObject]]


class MigrationObjectRegistry:
    """Migration objects by id, ordered through a dependency graph."""

    def __init__(
        self,
        objects: Optional[Iterable[ObjectLike]] = None,
        graph: Optional[DependencyGraph] = None,
    ):
        self.graph = graph or DependencyGraph()
        self._objects: Dict[str, BaseMigrationObject] = {}
        for obj in objects or ():
            self.register(obj)

    def register(self, obj: ObjectLike) -> BaseMigrationObject:
        """Add an object (class or instance).

        Raises:
            ConfigurationError: duplicate id, or its dependencies close a cycle
        """
        instance = obj() if isinstance(obj, type) else obj
        if instance.object_id in self._objects:
            raise ConfigurationError(
                f"Migration object already registered: {instance.object_id}",
                details={"objectId": instance.object_id},
            )
        if instance.dependencies is not None:
            self.graph.set_dependencies(instance.object_id, instance.dependencies)
        self._objects[instance.object_id] = instance
        return instance

    def get_object(self, object_id: str) -> BaseMigrationObject:
        try:
            return self._objects[object_id]
        except KeyError:
            raise ConfigurationError(
                f"Unknown migration object: {object_id}",
                details={"objectId": object_id, "available": self.list_object_ids()},
            ) from None

    def list_object_ids(self) -> List[str]:
        return sorted(self._objects)

    def validate(self) -> Dict[str, Any]:
        return self.graph.validate(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._objects

    # =========================================================================
    # Running
    # =========================================================================

    async def run_all(self, ctx: MigrationContext, object_ids: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Run objects wave by wave; objects inside a wave run concurrently.

        An object whose prerequisite failed or was skipped is skipped. A
        cancelled token stops dispatch between waves.

        Raises:
            ConfigurationError: unknown object id
            CircuitBreakerOpenError, PoolDrainedError, OperationCancelledError:
                a fatal error inside a wave; the wave finishes first
        """
        ids = self.list_object_ids() if object_ids is None else list(dict.fromkeys(object_ids))
        for object_id in ids:
            self.get_object(object_id)

        waves = self.graph.get_execution_waves(ids)
        results: Dict[str, Dict[str, Any]] = {}
        unsuccessful: Set[str] = set()
        started = time.perf_counter()
        limit = asyncio.Semaphore(max(1, ctx.concurrency))
        cancelled = False

        with with_correlation(run_id=ctx.run_id, stage="migration"):
            logger.info(f"Migrating {len(ids)} object(s) in {len(waves)} wave(s)")
            for number, wave in enumerate(waves, start=1):
                if ctx.token.cancelled:
                    cancelled = True
                    logger.warning(f"Run cancelled before wave {number}: {ctx.token.reason}")
                    for object_id in (o for w in waves[number - 1:] for o in w):
                        results[object_id] = self._skipped(object_id, "cancelled")
                    break

                runnable = []
                for object_id in wave:
                    blocked = sorted(self.graph.get_transitive_dependencies(object_id) & unsuccessful)
                    if blocked:
                        results[object_id] = self._skipped(object_id, f"prerequisite failed: {', '.join(blocked)}")
                        unsuccessful.add(object_id)
                    else:
                        runnable.append(object_id)

                ctx.emit(EventType.SYSTEM_STATUS, {"stage": "migration", "wave": number, "objects": runnable})
                with with_correlation(wave=number):
                    outcomes = await asyncio.gather(
                        *(self._run_one(self._objects[o], ctx, limit) for o in runnable),
                        return_exceptions=True,
                    )

                fatal = None
                for object_id, outcome in zip(runnable, outcomes):
                    if isinstance(outcome, MigrationObjectError):
                        results[object_id] = {
                            "objectId": object_id,
                            "name": self._objects[object_id].name,
                            "status": "failed",
                            "error": outcome.to_dict(),
                        }
                        unsuccessful.add(object_id)
                    elif isinstance(outcome, BaseException):
                        if fatal is None or not is_fatal_error(fatal):
                            fatal = outcome
                        unsuccessful.add(object_id)
                    else:
                        results[object_id] = outcome.to_dict()
                if fatal is not None:
                    logger.error(f"Migration run aborted in wave {number}: {fatal}")
                    raise fatal

        statuses = [r["status"] for r in results.values()]
        stats = {
            "total": len(ids),
            "completed": sum(1 for s in statuses if s.startswith("completed")),
            "failed": statuses.count("failed"),
            "skipped": statuses.count("skipped"),
            "waves": len(waves),
            "execution_order": [o for w in waves for o in w],
            "cancelled": cancelled,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        }
        logger.info(
            f"Migration run finished: {stats['completed']} completed, {stats['failed']} failed, "
            f"{stats['skipped']} skipped"
        )
        return {"results": results, "stats": stats}

    async def _run_one(self, obj: BaseMigrationObject, ctx: MigrationContext, limit: asyncio.Semaphore):
        async with limit:
            return await obj.run(ctx)

    def _skipped(self, object_id: str, reason: str) -> Dict[str, Any]:
        logger.warning(f"Skipping {object_id}: {reason}")
        return {"objectId": object_id, "name": self._objects[object_id].name, "status": "skipped", "reason": reason}

    @classmethod
    def with_builtins(cls, graph: Optional[DependencyGraph] = None) -> "MigrationObjectRegistry":
        """Registry holding every built-in SAP, configuration, Infor LN and Infor M3 object."""
        from migration.objects import BUILTIN_OBJECTS

        return cls(BUILTIN_OBJECTS, graph=graph)
