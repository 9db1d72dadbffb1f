"""Functional tests for xlsx export rendering.

Workbooks are read back with openpyxl to check layout, styling and the
values written from aggregation summaries.
"""

from __future__ import annotations

import io

import pytest
from openpyxl import load_workbook

from survey_engine.config import ExportConfig
from survey_engine.logic.export_formatter import XLSX_MEDIA_TYPE, format_question_report, format_survey_report
from survey_engine.models.response_types import (
    ChoiceCount,
    ChoiceSummary,
    MatrixColumnSummary,
    MatrixRowSummary,
    MatrixSummary,
    TextEntry,
    TextSummary,
)


@pytest.fixture
def config() -> ExportConfig:
    return ExportConfig()


def _sheet(doc):
    wb = load_workbook(io.BytesIO(doc.content))
    return wb["Summary"]


def _matrix() -> MatrixSummary:
    return MatrixSummary(
        question_id="q-grid",
        question_text="Rate each statement",
        type_tag="MATRIX_RADIO_BOX",
        page_index=0,
        answered_count=2,
        weighted=True,
        columns=[
            MatrixColumnSummary(column_identity="C1", label="Disagree", weight=1),
            MatrixColumnSummary(column_identity="C2", label="Agree", weight=3),
        ],
        rows=[
            MatrixRowSummary(row_identity="R1", label="Fast", counts={"C1": 0, "C2": 2}, earned=6, possible=6),
            MatrixRowSummary(row_identity="R2", label="Friendly", counts={"C1": 1, "C2": 0}, earned=1, possible=3),
        ],
    )


def _choice(counts=None) -> ChoiceSummary:
    counts = counts if counts is not None else [
        ChoiceCount(label="Red", count=2, percentage=66.7, percentage_label="66.7%"),
        ChoiceCount(label="Blue", count=1, percentage=33.3, percentage_label="33.3%"),
    ]
    return ChoiceSummary(
        question_id="q-colour",
        question_text="Favourite colour?",
        type_tag="RADIO_BOX",
        page_index=0,
        answered_count=3,
        total=sum(c.count for c in counts),
        counts=counts,
    )


def test_matrix_report_layout_and_styles(config):
    doc = format_question_report(_matrix(), survey_title="Customer Survey", config=config)
    assert doc.media_type == XLSX_MEDIA_TYPE
    assert doc.filename == "responses-q-grid.xlsx"
    ws = _sheet(doc)

    merged = {str(r) for r in ws.merged_cells.ranges}
    assert {"A1:D1", "A2:D2"} <= merged
    assert ws["A1"].value == "Customer Survey"
    assert ws["A1"].font.bold and ws["A1"].font.size == 14
    assert ws["A1"].fill.fgColor.rgb == "FFD1FAE5"
    assert ws.row_dimensions[1].height == 30
    assert ws["A2"].value == "Rate each statement"
    assert ws["A2"].font.italic

    headers = [ws.cell(row=3, column=c).value for c in range(1, 5)]
    assert headers == ["Statement", "Disagree (1)", "Agree (3)", "Total Score"]
    assert ws["B3"].fill.fgColor.rgb == "FF10B981"
    assert ws["B3"].font.color.rgb == "FFFFFFFF"

    assert [ws.cell(row=4, column=c).value for c in range(1, 5)] == ["Fast", "-", 2, "6/6"]
    assert [ws.cell(row=5, column=c).value for c in range(1, 5)] == ["Friendly", 1, "-", "1/3"]
    assert ws["C4"].fill.fgColor.rgb == "FFD1FAE5"
    assert ws["C4"].font.bold
    assert ws["B4"].font.color.rgb == "FF9CA3AF"
    assert ws["D4"].font.bold

    assert ws.column_dimensions["A"].width == 50
    assert ws.column_dimensions["B"].width == 15


def test_choice_report_writes_counts_and_percentages(config):
    ws = _sheet(format_question_report(_choice(), survey_title="Customer Survey", config=config))
    assert [ws.cell(row=3, column=c).value for c in range(1, 4)] == ["Option", "Count", "Percentage"]
    assert [ws.cell(row=4, column=c).value for c in range(1, 4)] == ["Red", 2, "66.7%"]
    assert [ws.cell(row=5, column=c).value for c in range(1, 4)] == ["Blue", 1, "33.3%"]


def test_text_report_has_date_column(config):
    summary = TextSummary(
        question_id="q-notes",
        question_text="Anything else?",
        type_tag="LONG_TEXT",
        page_index=1,
        answered_count=1,
        entries=[TextEntry(value="Great", answered_at="2026-03-02T08:00:00+00:00")],
    )
    ws = _sheet(format_question_report(summary, survey_title="Customer Survey", config=config))
    assert ws["A3"].value == "Response" and ws["B3"].value == "Date"
    assert ws["A4"].value == "Great" and ws["B4"].value == "2026-03-02"
    assert ws.column_dimensions["A"].width == 100


def test_empty_question_report_says_no_data(config):
    ws = _sheet(format_question_report(_choice(counts=[]), survey_title="Customer Survey", config=config))
    assert ws["A3"].value == "No data available for this question."


def test_empty_marker_is_configurable():
    ws = _sheet(format_question_report(_matrix(), survey_title="S", config=ExportConfig(empty_marker="0")))
    assert ws["B4"].value == "0"


def test_survey_report_stacks_sections(config):
    empty_text = TextSummary(
        question_id="q-notes", question_text="Anything else?", type_tag="LONG_TEXT", page_index=1
    )
    doc = format_survey_report("Customer Survey", [_choice(), _matrix(), empty_text], config, survey_id="s-1")
    assert doc.filename == "survey-s-1-summary.xlsx"
    ws = _sheet(doc)
    merged = {str(r) for r in ws.merged_cells.ranges}
    assert "A1:E1" in merged
    assert ws["A1"].value == "Customer Survey"

    # Choice section: question row 3, header 4, two data rows, two blank rows
    assert ws["A3"].value == "Favourite colour?"
    assert "A3:E3" in merged
    assert ws["A4"].value == "Option"
    assert ws["A6"].value == "Blue"
    assert ws["A7"].value is None and ws["A8"].value is None

    # Matrix section starts after the gap
    assert ws["A9"].value == "Rate each statement"
    assert ws["D10"].value == "Total Score"
    assert ws["D11"].value == "6/6"

    # Text section without answers
    assert ws["A15"].value == "Anything else?"
    assert ws["A16"].value == "No responses"


def test_choice_report_writes_percentage_labels_from_summary(config):
    counts = [
        ChoiceCount(label="Red", count=2, percentage=66.67, percentage_label="66.67%"),
        ChoiceCount(label="Blue", count=1, percentage=33.33, percentage_label="33.33%"),
    ]
    ws = _sheet(format_question_report(_choice(counts=counts), survey_title="Customer Survey", config=config))
    assert ws["C4"].value == "66.67%"
    assert ws["C5"].value == "33.33%"


def test_title_and_headers_are_vertically_centred(config):
    ws = _sheet(format_question_report(_choice(), survey_title="Customer Survey", config=config))
    assert ws["A1"].alignment.vertical == "center"
    assert ws["A1"].alignment.horizontal == "center"
    assert ws["B3"].alignment.vertical == "center"
    assert ws["A4"].alignment.wrap_text
