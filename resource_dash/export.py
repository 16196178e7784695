"""Snapshot exports: CSV for spreadsheets, PDF for printing.

Both renderings take an already built ``Stats`` and format every number
through ``format_number``, so the two files never disagree with each other
or with the live reading they were taken from.
"""
from __future__ import annotations

from dataclasses import dataclass
import csv
import io

import fitz  # pymupdf

from resource_dash.errors import UnsupportedFormat
from resource_dash.models import Stats, format_number, format_percent

CSV = "csv"
PDF = "pdf"
FORMAT_ALIASES = {
    "csv": CSV,
    "tabular": CSV,
    "pdf": PDF,
    "document": PDF,
}

PDF_TITLE = "Resource Dash Snapshot"
PDF_MARGIN = 56
PDF_FONT = "helv"
PDF_FONT_SIZE = 11
PDF_TITLE_SIZE = 16
PDF_LINE_SPACING = 1.5


@dataclass(frozen=True)
class Export:
    content: bytes
    media_type: str
    filename: str


def resolve_format(fmt: str) -> str:
    try:
        return FORMAT_ALIASES[fmt.strip().lower()]
    except KeyError:
        raise UnsupportedFormat(fmt) from None


def _charging_label(charging: bool | None) -> str:
    if charging is None:
        return "N/A"
    return "yes" if charging else "no"


def _battery_label(stats: Stats) -> str:
    if stats.battery_percent is None:
        return "N/A"
    return format_number(stats.battery_percent)


def build_csv(stats: Stats) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["time", "cpu%", "ram%", "battery%", "charging"])
    writer.writerow(
        [
            stats.timestamp,
            format_number(stats.cpu_percent),
            format_number(stats.ram_percent),
            _battery_label(stats),
            _charging_label(stats.charging),
        ]
    )
    writer.writerow([])
    writer.writerow(["pid", "name", "cpu", "mem"])
    for proc in stats.top_processes:
        writer.writerow(
            [
                "" if proc.pid is None else proc.pid,
                proc.name,
                format_number(proc.cpu_percent),
                format_number(proc.mem_percent),
            ]
        )
    return buffer.getvalue().encode("utf-8")


class _PdfWriter:
    """Line-oriented text layout that starts a new page when one fills up."""

    def __init__(self) -> None:
        self.doc = fitz.open()
        self.width, self.height = fitz.paper_size("a4")
        self.page = None
        self.y = 0.0
        self._new_page()

    def _new_page(self) -> None:
        self.page = self.doc.new_page(width=self.width, height=self.height)
        self.y = PDF_MARGIN

    def _text_width(self, text: str, fontsize: float) -> float:
        return fitz.get_text_length(text, fontname=PDF_FONT, fontsize=fontsize)

    def wrap(self, text: str, fontsize: float = PDF_FONT_SIZE) -> list[str]:
        """Split ``text`` on spaces into pieces that fit between the margins.

        A single word wider than the page (a long executable path, say) is
        broken between characters.
        """
        limit = self.width - 2 * PDF_MARGIN
        pieces: list[str] = []
        current = ""
        for word in text.split(" "):
            candidate = f"{current} {word}" if current else word
            if self._text_width(candidate, fontsize) <= limit:
                current = candidate
                continue
            if current:
                pieces.append(current)
            current = ""
            for char in word:
                if current and self._text_width(current + char, fontsize) > limit:
                    pieces.append(current)
                    current = ""
                current += char
        pieces.append(current)
        return pieces

    def line(self, text: str = "", fontsize: float = PDF_FONT_SIZE, underline: bool = False) -> None:
        step = fontsize * PDF_LINE_SPACING
        for piece in self.wrap(text, fontsize):
            if self.y + step > self.height - PDF_MARGIN:
                self._new_page()
            self.y += step
            if not piece:
                continue
            self.page.insert_text(
                (PDF_MARGIN, self.y), piece, fontsize=fontsize, fontname=PDF_FONT
            )
            if underline:
                self.page.draw_line(
                    (PDF_MARGIN, self.y + 2),
                    (PDF_MARGIN + self._text_width(piece, fontsize), self.y + 2),
                )

    def tobytes(self) -> bytes:
        self.doc.set_metadata({"title": PDF_TITLE, "creator": "resource-dash"})
        try:
            return self.doc.tobytes()
        finally:
            self.doc.close()


def build_pdf(stats: Stats) -> bytes:
    pdf = _PdfWriter()
    pdf.line(PDF_TITLE, fontsize=PDF_TITLE_SIZE, underline=True)
    pdf.line()
    pdf.line(f"Time: {stats.timestamp}")
    pdf.line(f"CPU: {format_percent(stats.cpu_percent)}")
    pdf.line(f"RAM: {format_percent(stats.ram_percent)}")
    pdf.line(f"Battery: {format_percent(stats.battery_percent)}")
    pdf.line(f"Charging: {_charging_label(stats.charging)}")
    pdf.line()
    pdf.line("Top processes (sample):")
    for proc in stats.top_processes:
        pid = "-" if proc.pid is None else str(proc.pid)
        pdf.line(
            f"{pid} {proc.name} - CPU: {format_percent(proc.cpu_percent)} "
            f"MEM: {format_percent(proc.mem_percent)}"
        )
    return pdf.tobytes()


def build_export(stats: Stats, fmt: str = CSV) -> Export:
    resolved = resolve_format(fmt)
    if resolved == PDF:
        return Export(
            content=build_pdf(stats),
            media_type="application/pdf",
            filename="dash-snapshot.pdf",
        )
    return Export(
        content=build_csv(stats),
        media_type="text/csv",
        filename="dash-snapshot.csv",
    )
