"""Tests for CSV and PDF snapshot exports."""
from __future__ import annotations

import csv
import io
import re

import fitz  # pymupdf
import pytest

from resource_dash.errors import UnsupportedFormat
from resource_dash.export import PDF_MARGIN, build_csv, build_export, build_pdf, resolve_format
from resource_dash.models import ProcessSample, Stats, format_number


@pytest.fixture
def stats() -> Stats:
    return Stats(
        timestamp="2026-10-18T12:00:00+00:00",
        cpu_percent=42.12,
        ram_percent=25.0,
        battery_percent=None,
        charging=None,
        top_processes=(
            ProcessSample(200, "python", 55.57, 3.33),
            ProcessSample(202, 'say "hi", world', 12.0, 1.0),
            ProcessSample(None, "kworker", 2.5, 0.0),
        ),
    )


def pdf_text(content: bytes) -> str:
    with fitz.open(stream=content, filetype="pdf") as doc:
        return "\n".join(page.get_text() for page in doc)


class TestFormats:
    """Tests for format resolution."""

    @pytest.mark.parametrize(
        "fmt,expected",
        [("csv", "csv"), ("CSV", "csv"), ("tabular", "csv"), ("pdf", "pdf"), (" document ", "pdf")],
    )
    def test_aliases(self, fmt, expected):
        assert resolve_format(fmt) == expected

    def test_unknown(self):
        with pytest.raises(UnsupportedFormat):
            resolve_format("xlsx")

    def test_export_metadata(self, stats):
        csv_export = build_export(stats, "csv")
        pdf_export = build_export(stats, "pdf")
        assert (csv_export.media_type, csv_export.filename) == ("text/csv", "dash-snapshot.csv")
        assert (pdf_export.media_type, pdf_export.filename) == ("application/pdf", "dash-snapshot.pdf")


class TestCsv:
    """Tests for the tabular export."""

    def test_sections(self, stats):
        rows = list(csv.reader(io.StringIO(build_csv(stats).decode("utf-8"))))
        assert rows[0] == ["time", "cpu%", "ram%", "battery%", "charging"]
        assert rows[1] == ["2026-10-18T12:00:00+00:00", "42.12", "25", "N/A", "N/A"]
        assert rows[2] == []
        assert rows[3] == ["pid", "name", "cpu", "mem"]
        assert rows[4:] == [
            ["200", "python", "55.57", "3.33"],
            ["202", 'say "hi", world', "12", "1"],
            ["", "kworker", "2.5", "0"],
        ]

    def test_quotes_doubled(self, stats):
        text = build_csv(stats).decode("utf-8")
        assert '"say ""hi"", world"' in text


class TestPdf:
    """Tests for the document export."""

    def test_is_pdf(self, stats):
        assert build_pdf(stats).startswith(b"%PDF")

    def test_contains_fields(self, stats):
        text = pdf_text(build_pdf(stats))
        assert "Resource Dash Snapshot" in text
        assert "CPU: 42.12%" in text
        assert "RAM: 25%" in text
        assert "Battery: N/A" in text
        assert "kworker" in text

    def test_paginates_long_process_lists(self, stats):
        many = tuple(
            ProcessSample(pid, f"worker-{pid}", 1.0, 0.5) for pid in range(120)
        )
        long_stats = Stats(
            timestamp=stats.timestamp,
            cpu_percent=stats.cpu_percent,
            ram_percent=stats.ram_percent,
            top_processes=many,
        )
        with fitz.open(stream=build_pdf(long_stats), filetype="pdf") as doc:
            assert doc.page_count > 1

    def test_long_lines_wrap_inside_margins(self, stats):
        long_exe = "/opt/vendor/" + "x" * 300 + "/bin/agent"
        wide_stats = Stats(
            timestamp=stats.timestamp,
            cpu_percent=stats.cpu_percent,
            ram_percent=stats.ram_percent,
            top_processes=(ProcessSample(7, long_exe, 1.0, 0.5),),
        )
        content = build_pdf(wide_stats)
        with fitz.open(stream=content, filetype="pdf") as doc:
            page = doc[0]
            right_edge = page.rect.width - PDF_MARGIN
            assert all(word[2] <= right_edge + 1 for word in page.get_text("words"))
        assert long_exe in pdf_text(content).replace("\n", "")


class TestConsistency:
    """Both exports of one snapshot carry identical numbers."""

    def test_numeric_fields_match(self, stats):
        rows = list(csv.reader(io.StringIO(build_csv(stats).decode("utf-8"))))
        text = pdf_text(build_pdf(stats))
        cpu, ram = rows[1][1], rows[1][2]
        assert re.search(rf"CPU: {re.escape(cpu)}%", text)
        assert re.search(rf"RAM: {re.escape(ram)}%", text)
        for row, proc in zip(rows[4:], stats.top_processes):
            assert row[2] == format_number(proc.cpu_percent)
            assert f"CPU: {row[2]}%" in text

    def test_repeatable(self, stats):
        assert build_csv(stats) == build_csv(stats)
        assert pdf_text(build_pdf(stats)) == pdf_text(build_pdf(stats))
