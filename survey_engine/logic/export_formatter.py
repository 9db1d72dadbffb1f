"""Render question summaries as styled xlsx workbooks.

Pure rendering: every number written here comes from a summary produced by
`survey_engine.logic.aggregation`; nothing is re-aggregated.

Single-question layout, sheet `Summary`:
- row 1: survey title merged across the table width
- row 2: question text merged across the table width
- row 3: column headers
- row 4+: one row per option, matrix row or text response

The whole-survey layout stacks one such section per question on one sheet.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Any, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from survey_engine.config import ExportConfig
from survey_engine.logic.answer_canonical import canonicalize_answer_value
from survey_engine.models.response_types import ChoiceSummary, MatrixSummary, TabularDocument, TextSummary

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

STATEMENT_HEADER = "Statement"
TOTAL_SCORE_HEADER = "Total Score"
PERCENTAGE_HEADER = "Percentage"
DATE_HEADER = "Date"
NO_DATA_QUESTION = "No data available for this question."
NO_DATA_SECTION = "No responses"

# (header, value kind) where kind is one of: label, count, score, percentage, text, date
Column = Tuple[str, str]


def _fill(argb: str) -> PatternFill:
    return PatternFill(start_color=argb, end_color=argb, fill_type="solid")


def _number(value: Optional[float]) -> str:
    return canonicalize_answer_value(value if value is not None else 0) or "0"


def _table(summary: Any, config: ExportConfig) -> Tuple[List[Column], List[List[Any]], List[int]]:
    """Return (columns, data rows, column widths) for one summary."""
    if isinstance(summary, MatrixSummary):
        columns: List[Column] = [(STATEMENT_HEADER, "label")]
        for col in summary.columns:
            header = col.label if col.weight is None else f"{col.label} ({_number(col.weight)})"
            columns.append((header, "count"))
        if summary.weighted:
            columns.append((TOTAL_SCORE_HEADER, "score"))
        rows: List[List[Any]] = []
        for row in summary.rows:
            values: List[Any] = [row.label]
            values.extend(row.counts.get(col.column_identity, 0) for col in summary.columns)
            if summary.weighted:
                values.append(f"{_number(row.earned)}/{_number(row.possible)}")
            rows.append(values)
        widths = [config.label_column_width] + [config.value_column_width] * (len(columns) - 1)
        return columns, rows, widths
    if isinstance(summary, ChoiceSummary):
        columns = [("Option", "label"), ("Count", "count"), (PERCENTAGE_HEADER, "percentage")]
        rows = [[c.label, c.count, c.percentage_label] for c in summary.counts]
        return columns, rows, [config.label_column_width, config.value_column_width, config.value_column_width]
    if isinstance(summary, TextSummary):
        columns = [("Response", "text"), (DATE_HEADER, "date")]
        rows = [[e.value, (e.answered_at or "")[:10]] for e in summary.entries]
        return columns, rows, [config.text_column_width, config.value_column_width]
    raise TypeError(f"unsupported summary type: {type(summary).__name__}")


class _SheetWriter:
    def __init__(self, ws: Worksheet, config: ExportConfig) -> None:
        self.ws = ws
        self.config = config
        self.header_font = Font(bold=True, color=config.header_font_color)
        self.header_fill = _fill(config.header_fill_color)
        self.center = Alignment(horizontal="center", vertical="center")
        self.wrap = Alignment(wrap_text=True, vertical="center")

    def merged(self, row: int, width: int, value: Any, *, font: Font, alignment: Alignment, fill: Optional[PatternFill] = None, height: Optional[float] = None) -> None:
        last = get_column_letter(max(width, 1))
        if width > 1:
            self.ws.merge_cells(f"A{row}:{last}{row}")
        cell = self.ws.cell(row=row, column=1, value=value)
        cell.font = font
        cell.alignment = alignment
        if fill is not None:
            cell.fill = fill
        if height is not None:
            self.ws.row_dimensions[row].height = height

    def title(self, row: int, width: int, text: str) -> None:
        self.merged(
            row,
            width,
            text,
            font=Font(bold=True, size=14, color=self.config.title_font_color),
            fill=_fill(self.config.title_fill_color),
            alignment=self.center,
            height=30,
        )

    def question(self, row: int, width: int, text: str, *, alignment: Optional[Alignment] = None) -> None:
        self.merged(
            row,
            width,
            text,
            font=Font(italic=True, color=self.config.question_font_color),
            alignment=alignment or self.center,
            height=25,
        )

    def table(self, start_row: int, columns: Sequence[Column], rows: Sequence[Sequence[Any]], widths: Sequence[int]) -> int:
        """Write header and data rows from `start_row`; return the next free row."""
        for idx, (header, _) in enumerate(columns, start=1):
            cell = self.ws.cell(row=start_row, column=idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.center
            letter = get_column_letter(idx)
            current = self.ws.column_dimensions[letter].width or 0
            self.ws.column_dimensions[letter].width = max(current, widths[idx - 1])
        self.ws.row_dimensions[start_row].height = 25
        highlight_fill = _fill(self.config.highlight_fill_color)
        highlight_font = Font(bold=True, color=self.config.highlight_font_color)
        muted_font = Font(color=self.config.muted_font_color)
        row_no = start_row + 1
        for values in rows:
            for idx, ((_, kind), value) in enumerate(zip(columns, values), start=1):
                cell = self.ws.cell(row=row_no, column=idx)
                if idx == 1:
                    cell.value = value
                    cell.font = Font(bold=kind == "label")
                    cell.alignment = self.wrap
                    continue
                cell.alignment = self.center
                if kind == "count" and isinstance(value, int) and not isinstance(value, bool):
                    if value > 0:
                        cell.value = value
                        cell.fill = highlight_fill
                        cell.font = highlight_font
                    else:
                        cell.value = self.config.empty_marker
                        cell.font = muted_font
                    continue
                cell.value = value
                if kind == "score":
                    cell.font = Font(bold=True)
            row_no += 1
        return row_no

    def empty(self, row: int, width: int, text: str) -> None:
        self.merged(
            row,
            width,
            text,
            font=Font(italic=True, color=self.config.muted_font_color),
            alignment=self.center,
        )


def _has_data(summary: Any) -> bool:
    if isinstance(summary, MatrixSummary):
        return bool(summary.rows) and bool(summary.columns)
    if isinstance(summary, ChoiceSummary):
        return bool(summary.counts)
    return bool(getattr(summary, "entries", None))


def _to_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _safe_name(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", text).strip("-") or "export"


def format_question_report(summary: Any, *, survey_title: str, config: ExportConfig) -> TabularDocument:
    """Render one question summary as a single-sheet workbook."""
    columns, rows, widths = _table(summary, config)
    width = len(columns) if rows else 2
    wb = Workbook()
    ws = wb.active
    ws.title = config.sheet_title
    writer = _SheetWriter(ws, config)
    writer.title(1, width, survey_title or "Survey Results")
    writer.question(2, width, summary.question_text or "Question Analysis")
    if rows and _has_data(summary):
        writer.table(3, columns, rows, widths)
    else:
        writer.empty(3, width, NO_DATA_QUESTION)
    content = _to_bytes(wb)
    logger.info("export_question_rendered question_id=%s rows=%s bytes=%s", summary.question_id, len(rows), len(content))
    return TabularDocument(
        filename=f"responses-{_safe_name(summary.question_id)}.xlsx",
        media_type=XLSX_MEDIA_TYPE,
        content=content,
    )


def format_survey_report(
    survey_title: str,
    summaries: Sequence[Any],
    config: ExportConfig,
    *,
    survey_id: Optional[str] = None,
) -> TabularDocument:
    """Render every question summary as stacked sections on one sheet."""
    wb = Workbook()
    ws = wb.active
    ws.title = config.sheet_title
    writer = _SheetWriter(ws, config)
    writer.title(1, 5, survey_title or "Survey Results")
    current = 3
    left = Alignment(horizontal="left", vertical="center")
    for summary in summaries:
        columns, rows, widths = _table(summary, config)
        writer.question(current, max(len(columns), 5), summary.question_text, alignment=left)
        current += 1
        if rows and _has_data(summary):
            current = writer.table(current, columns, rows, widths)
        else:
            cell = ws.cell(row=current, column=1, value=NO_DATA_SECTION)
            cell.font = Font(italic=True, color=config.muted_font_color)
            current += 1
        # Two blank rows between sections
        current += 2
    content = _to_bytes(wb)
    logger.info("export_survey_rendered survey_id=%s questions=%s bytes=%s", survey_id, len(summaries), len(content))
    return TabularDocument(
        filename=f"survey-{_safe_name(survey_id or survey_title)}-summary.xlsx",
        media_type=XLSX_MEDIA_TYPE,
        content=content,
    )


__all__ = [
    "XLSX_MEDIA_TYPE",
    "format_question_report",
    "format_survey_report",
]
