"""Query service: one registry shared by executor, paginator, exporter and reaper."""
from pathlib import Path

from sql_editor.core.config import Settings
from sql_editor.services.csv_exporter import CsvExport, CsvExporter
from sql_editor.services.outcome import Outcome, success
from sql_editor.services.paginator import DEFAULT_PAGE_SIZE, ResultsPage, ResultsPaginator
from sql_editor.services.query_executor import QueryExecutor
from sql_editor.services.reaper import RetentionReaper
from sql_editor.services.registry import (
    ConnectionSource,
    Execution,
    ExecutionRegistry,
    not_found,
)
from sql_editor.services.scheduler import AsyncioScheduler, Scheduler


class QueryService:
    def __init__(
        self,
        registry: ExecutionRegistry,
        executor: QueryExecutor,
        paginator: ResultsPaginator,
        exporter: CsvExporter,
        reaper: RetentionReaper,
    ):
        self.registry = registry
        self.executor = executor
        self.paginator = paginator
        self.exporter = exporter
        self.reaper = reaper

    async def submit(self, sql: str, timeout_ms: int | None = None) -> Outcome[Execution]:
        return await self.executor.submit(sql, timeout_ms)

    def get_status(self, execution_id: str) -> Outcome[Execution]:
        execution = self.registry.get(execution_id)
        if execution is None:
            return not_found(execution_id)
        return success(execution)

    def get_page(
        self, execution_id: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> Outcome[ResultsPage]:
        return self.paginator.get_page(execution_id, page, page_size)

    async def export_csv(self, execution_id: str) -> Outcome[CsvExport]:
        return await self.exporter.export_csv(execution_id)

    async def shutdown(self) -> None:
        """Stop in-flight runs, cancel pending cleanups and release every connection."""
        self.executor.cancel_all()
        await self.executor.join()
        await self.reaper.shutdown()


def build_query_service(
    settings: Settings,
    provider: ConnectionSource,
    scheduler: Scheduler | None = None,
) -> QueryService:
    registry = ExecutionRegistry()
    exporter = CsvExporter(registry, Path(settings.EXPORT_DIR), settings.QUERY_MAX_CSV_ROWS)
    reaper = RetentionReaper(
        registry,
        scheduler if scheduler is not None else AsyncioScheduler(),
        settings.QUERY_RETENTION_SECONDS,
        exporter,
    )
    executor = QueryExecutor(
        provider,
        registry,
        reaper,
        default_timeout_ms=settings.QUERY_DEFAULT_TIMEOUT_MS,
        max_rows=settings.QUERY_MAX_ROWS,
        schema=settings.DATABASE_SCHEMA,
    )
    return QueryService(
        registry=registry,
        executor=executor,
        paginator=ResultsPaginator(registry, settings.QUERY_MAX_PAGE_SIZE),
        exporter=exporter,
        reaper=reaper,
    )
