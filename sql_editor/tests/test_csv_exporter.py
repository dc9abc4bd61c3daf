"""Unit tests for the CSV exporter: files land in pytest's tmp_path."""
import asyncio
import csv
import sys
import os
from datetime import datetime, timezone

import asyncpg
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from conftest import make_execution, rows_of
from sql_editor.services import csv_exporter
from sql_editor.services.csv_exporter import CsvExporter, csv_file_name
from sql_editor.services.outcome import ErrorKind
from sql_editor.services.registry import ExecutionRegistry


@pytest.fixture
def registry():
    return ExecutionRegistry()


@pytest.fixture
def export_dir(tmp_path):
    return tmp_path / "nested" / "exports"


def _read(path):
    with open(path, newline="", encoding="utf-8") as fh:
        return list(csv.reader(fh))


class TestExport:
    def test_header_and_rows(self, registry, export_dir):
        registry.add(make_execution("abc", records=[{"b": 1, "a": "x"}, {"b": 2, "a": "y"}]))
        outcome = asyncio.run(CsvExporter(registry, export_dir).export_csv("abc"))

        assert outcome.ok
        export = outcome.value
        assert export.file_name == "query_results_abc.csv"
        assert export.file_path.name == export.file_name
        assert export.file_path.parent == export_dir.resolve()
        assert _read(export.file_path) == [["b", "a"], ["1", "x"], ["2", "y"]]

    def test_exports_all_retained_rows_not_a_page(self, registry, export_dir):
        registry.add(make_execution("big", records=rows_of(15_000)))
        export = asyncio.run(CsvExporter(registry, export_dir).export_csv("big")).value
        lines = _read(export.file_path)
        assert lines[0] == ["id", "name"]
        assert len(lines) - 1 == 10_000

    def test_export_cap(self, registry, export_dir):
        registry.add(make_execution("q", records=rows_of(50)))
        export = asyncio.run(CsvExporter(registry, export_dir, max_rows=20).export_csv("q")).value
        assert len(_read(export.file_path)) == 21

    def test_cell_rendering(self, registry, export_dir):
        stamp = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
        record = {
            "nothing": None,
            "doc": {"k": [1, 2]},
            "tags": ["a", "b"],
            "at": stamp,
            "text": 'say "hi", ok',
        }
        registry.add(make_execution("q", records=[record]))
        export = asyncio.run(CsvExporter(registry, export_dir).export_csv("q")).value
        header, row = _read(export.file_path)
        assert header == ["nothing", "doc", "tags", "at", "text"]
        assert row == ["", '{"k": [1, 2]}', '["a", "b"]', stamp.isoformat(), 'say "hi", ok']

    def test_empty_results_write_empty_header(self, registry, export_dir):
        registry.add(make_execution("q", records=[]))
        export = asyncio.run(CsvExporter(registry, export_dir).export_csv("q")).value
        assert export.file_path.exists()
        assert _read(export.file_path) == [[]]

    def test_repeat_export_overwrites(self, registry, export_dir):
        registry.add(make_execution("q", records=rows_of(3)))
        exporter = CsvExporter(registry, export_dir)
        first = asyncio.run(exporter.export_csv("q")).value
        second = asyncio.run(exporter.export_csv("q")).value
        assert first == second
        assert len(_read(second.file_path)) == 4

    def test_reexport_swaps_in_a_new_file(self, registry, export_dir):
        registry.add(make_execution("q", records=rows_of(3)))
        exporter = CsvExporter(registry, export_dir)
        path = asyncio.run(exporter.export_csv("q")).value.file_path

        with open(path, newline="", encoding="utf-8") as streaming:
            asyncio.run(exporter.export_csv("q"))
            assert len(list(csv.reader(streaming))) == 4
            assert os.fstat(streaming.fileno()).st_ino != os.stat(path).st_ino
        assert sorted(p.name for p in export_dir.iterdir()) == ["query_results_q.csv"]

    def test_failed_write_leaves_previous_export_intact(self, registry, export_dir, monkeypatch):
        registry.add(make_execution("q", records=rows_of(5)))
        exporter = CsvExporter(registry, export_dir)
        path = asyncio.run(exporter.export_csv("q")).value.file_path
        before = _read(path)

        def explode(value):
            if value == "row-3":
                raise ValueError("cannot render")
            return value

        monkeypatch.setattr(csv_exporter, "_render_cell", explode)
        with pytest.raises(ValueError):
            asyncio.run(exporter.export_csv("q"))

        assert _read(path) == before
        assert sorted(p.name for p in export_dir.iterdir()) == ["query_results_q.csv"]

    def test_bytes_rendered_as_hex(self, registry, export_dir):
        registry.add(make_execution("q", records=[{"b": b"\xff\x00", "r": asyncpg.Range(1, 5)}]))
        export = asyncio.run(CsvExporter(registry, export_dir).export_csv("q")).value
        assert _read(export.file_path) == [["b", "r"], ["\\xff00", str(asyncpg.Range(1, 5))]]

    def test_discard_removes_file(self, registry, export_dir):
        registry.add(make_execution("q", records=rows_of(1)))
        exporter = CsvExporter(registry, export_dir)
        path = asyncio.run(exporter.export_csv("q")).value.file_path
        exporter.discard("q")
        assert not path.exists()
        exporter.discard("q")

    def test_file_name(self):
        assert csv_file_name("1234") == "query_results_1234.csv"


class TestLookupFailures:
    @pytest.mark.parametrize(
        "execution, kind",
        [
            (None, ErrorKind.NOT_FOUND),
            (make_execution("q"), ErrorKind.STILL_RUNNING),
            (make_execution("q", failed=True), ErrorKind.EXECUTION_FAILED),
        ],
    )
    def test_no_file_written(self, registry, export_dir, execution, kind):
        if execution is not None:
            registry.add(execution)
        outcome = asyncio.run(CsvExporter(registry, export_dir).export_csv("q"))
        assert outcome.error.kind is kind
        assert not export_dir.exists()
