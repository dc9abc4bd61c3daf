"""Results Paginator: page views over a stored result set. Never mutates it."""
import math
from dataclasses import dataclass
from typing import Any

from sql_editor.services.outcome import Outcome, success
from sql_editor.services.registry import ExecutionRegistry, QueryColumn, completed_results

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1_000


@dataclass(frozen=True)
class ResultsPage:
    columns: list[QueryColumn]
    rows: list[list[Any]]
    row_count: int
    truncated: bool
    page_count: int
    current_page: int


class ResultsPaginator:
    def __init__(self, registry: ExecutionRegistry, max_page_size: int = MAX_PAGE_SIZE):
        self._registry = registry
        self.max_page_size = max_page_size

    def effective_page_size(self, page_size: int) -> int:
        return min(max(page_size, 1), self.max_page_size)

    def get_page(
        self, execution_id: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> Outcome[ResultsPage]:
        lookup = completed_results(self._registry, execution_id)
        if not lookup.ok:
            return lookup
        results = lookup.value

        size = self.effective_page_size(page_size)
        start = (page - 1) * size
        # Negative starts would slice from the end of the list
        rows = results.rows[start:start + size] if page >= 1 else []

        return success(
            ResultsPage(
                columns=results.columns,
                rows=rows,
                row_count=results.row_count,
                truncated=results.truncated,
                page_count=math.ceil(len(results.rows) / size),
                current_page=page,
            )
        )
