"""CSV Exporter: writes a stored result set to query_results_<id>.csv for download."""
import asyncio
import csv
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

from sql_editor.services.outcome import Outcome, success
from sql_editor.services.registry import ExecutionRegistry, QueryResults, completed_results
from sql_editor.services.values import normalize_value

logger = logging.getLogger(__name__)

MAX_CSV_ROWS = 100_000


@dataclass(frozen=True)
class CsvExport:
    file_path: Path
    file_name: str


def csv_file_name(execution_id: str) -> str:
    return f"query_results_{execution_id}.csv"


def _render_cell(value: Any) -> Any:
    value = normalize_value(value)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def _write_csv(path: Path, results: QueryResults, max_rows: int) -> None:
    """Write to a temp file beside path, then swap it in.

    A download already streaming the previous file keeps reading the old
    inode; readers never see a half-written export.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile(
        "w", dir=path.parent, prefix=".", suffix=".csv.tmp",
        newline="", encoding="utf-8", delete=False,
    )
    try:
        with tmp as fh:
            writer = csv.writer(fh)
            writer.writerow([col.name for col in results.columns])
            for row in results.rows[:max_rows]:
                writer.writerow([_render_cell(value) for value in row])
        os.replace(tmp.name, path)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise


class CsvExporter:
    def __init__(self, registry: ExecutionRegistry, export_dir: str | Path, max_rows: int = MAX_CSV_ROWS):
        self._registry = registry
        self.export_dir = Path(export_dir)
        self.max_rows = max_rows

    def export_path(self, execution_id: str) -> Path:
        return self.export_dir.resolve() / csv_file_name(execution_id)

    async def export_csv(self, execution_id: str) -> Outcome[CsvExport]:
        lookup = completed_results(self._registry, execution_id)
        if not lookup.ok:
            return lookup

        file_path = self.export_path(execution_id)

        # File I/O off the event loop
        await asyncio.get_event_loop().run_in_executor(
            None, _write_csv, file_path, lookup.value, self.max_rows
        )
        logger.info("Wrote CSV export for query %s to %s", execution_id, file_path)
        return success(CsvExport(file_path=file_path, file_name=file_path.name))

    def discard(self, execution_id: str) -> None:
        """Remove the export file if one was written. Failures are logged, not raised."""
        path = self.export_path(execution_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Removing CSV export %s failed: %s", path, exc)
