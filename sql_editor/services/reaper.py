"""Retention Reaper: frees an execution's connection, registry slot and CSV export after a delay."""
import logging

from sql_editor.services.csv_exporter import CsvExporter
from sql_editor.services.registry import ExecutionRegistry
from sql_editor.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


class RetentionReaper:
    def __init__(
        self,
        registry: ExecutionRegistry,
        scheduler: Scheduler,
        delay_seconds: float,
        exporter: CsvExporter | None = None,
    ):
        self._registry = registry
        self._scheduler = scheduler
        self._exporter = exporter
        self.delay_seconds = delay_seconds

    def schedule(self, execution_id: str) -> None:
        self._scheduler.call_later(self.delay_seconds, self.reap, execution_id)

    async def reap(self, execution_id: str) -> bool:
        """Drop the execution if it is still registered. Returns whether anything was reaped."""
        execution = self._registry.remove(execution_id)
        if execution is None:
            return False
        await execution.release()
        if self._exporter is not None:
            self._exporter.discard(execution_id)
        logger.info("Cleaned up query %s", execution_id)
        return True

    async def shutdown(self) -> None:
        self._scheduler.cancel_all()
        executions = self._registry.drain()
        for execution in executions:
            await execution.release()
            if self._exporter is not None:
                self._exporter.discard(execution.id)
        if executions:
            logger.info("Released %d queries on shutdown", len(executions))
