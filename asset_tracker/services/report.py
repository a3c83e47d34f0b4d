from __future__ import annotations

import io
from typing import Sequence, TypeVar

from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .history import HistoryEntry

T = TypeVar("T")

PAGE_SIZE = landscape(A4)
MARGIN = 30
ROW_HEIGHT = 20
TITLE_HEIGHT = 40
FONT_SIZE = 10

COLUMNS: tuple[tuple[str, int], ...] = (
    ("ID", 40),
    ("Category", 100),
    ("Name", 120),
    ("Serial Number", 100),
    ("Employee Name", 120),
    ("Submitted By", 100),
    ("Created At", 120),
)


def paginate(
    rows: Sequence[T],
    *,
    page_height: float,
    margin: float = MARGIN,
    row_height: float = ROW_HEIGHT,
    first_page_offset: float = TITLE_HEIGHT,
) -> list[list[T]]:
    """Split rows into pages, measuring downward from the top edge.

    Each page starts with a header row; the first page also leaves room for
    the title. A row goes to a fresh page when it would cross the bottom
    margin.
    """
    pages: list[list[T]] = [[]]
    bottom = page_height - margin
    y = margin + first_page_offset + row_height
    for row in rows:
        if y + row_height > bottom:
            pages.append([])
            y = margin + row_height
        pages[-1].append(row)
        y += row_height
    return pages


def _fit(text: str, width: float, font: str) -> str:
    if stringWidth(text, font, FONT_SIZE) <= width:
        return text
    while text and stringWidth(text + "...", font, FONT_SIZE) > width:
        text = text[:-1]
    return text + "..."


def _cells(entry: HistoryEntry) -> list[str]:
    record = entry.record
    return [
        str(record.id),
        entry.category,
        record.name or "-",
        record.serial_number or "-",
        record.employee_name or "-",
        record.submitted_by or "-",
        record.created_at.strftime("%Y-%m-%d %H:%M UTC"),
    ]


class ReportRenderer:
    title = "Asset History Report"

    def render(self, entries: Sequence[HistoryEntry]) -> bytes:
        buffer = io.BytesIO()
        width, height = PAGE_SIZE
        pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE)
        pdf.setTitle(self.title)

        for index, page in enumerate(paginate(entries, page_height=height)):
            y = MARGIN
            if index == 0:
                pdf.setFont("Helvetica-Bold", 18)
                pdf.drawCentredString(width / 2, height - MARGIN - 18, self.title)
                y += TITLE_HEIGHT
            self._draw_row(pdf, [name for name, _ in COLUMNS], y, height, "Helvetica-Bold")
            y += ROW_HEIGHT
            for entry in page:
                self._draw_row(pdf, _cells(entry), y, height, "Helvetica")
                y += ROW_HEIGHT
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    def _draw_row(self, pdf, cells: list[str], y: float, page_height: float, font: str) -> None:
        pdf.setFont(font, FONT_SIZE)
        x = MARGIN
        for text, (_, col_width) in zip(cells, COLUMNS):
            pdf.drawString(x, page_height - y - FONT_SIZE, _fit(text, col_width - 4, font))
            x += col_width
