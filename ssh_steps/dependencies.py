"""Dependency injection container for SSH steps.

The worker pool, log router and coordinator are process-wide resources with
an explicit lifecycle: created at server startup, shut down at teardown.
"""

from dataclasses import dataclass

from ssh_steps.config import Settings
from ssh_steps.execution import ExecutionCoordinator, WorkerPool
from ssh_steps.logs import CorrelatedLogRouter


@dataclass
class Dependencies:
    """Container for SSH steps dependencies.

    Example:
        deps = Dependencies.create()
        execution = run_step(step, context, deps.coordinator)
    """

    settings: Settings
    pool: WorkerPool
    router: CorrelatedLogRouter
    coordinator: ExecutionCoordinator

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies from environment settings."""
        return cls.from_settings(Settings.from_env())

    @classmethod
    def from_settings(cls, settings: Settings) -> "Dependencies":
        """Create dependencies with custom settings.

        Args:
            settings: Custom Settings instance

        Returns:
            Dependencies wired from settings
        """
        pool = WorkerPool()
        router = CorrelatedLogRouter(
            buffer_size=settings.log_buffer_size,
            flush_interval_ms=settings.log_flush_interval_ms,
            rate_limit=settings.log_rate_limit,
        )
        coordinator = ExecutionCoordinator(pool, router=router)
        return cls(settings=settings, pool=pool, router=router, coordinator=coordinator)

    async def cleanup(self) -> None:
        """Cancel and await every execution still running."""
        await self.pool.shutdown()
