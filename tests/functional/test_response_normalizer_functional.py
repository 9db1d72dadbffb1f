"""Functional tests for response normalization and display mapping."""

from __future__ import annotations

import pytest

from survey_engine.logic.identity_resolver import IdentityResolver
from survey_engine.logic.response_normalizer import normalize, to_display
from survey_engine.models.canonical import (
    Pair,
    PairSetValue,
    RawValue,
    ScalarSetValue,
    ScalarValue,
    dump_canonical,
    load_canonical,
)
from survey_engine.models.definition import SurveyDefinition
from survey_engine.models.question_kind import QuestionKind, canonical_kind


@pytest.fixture
def matrix_question():
    definition = SurveyDefinition.model_validate(
        {
            "survey_id": "s-n",
            "pages": [
                {
                    "page_id": "p-1",
                    "questions": [
                        {
                            "questionId": "q-m",
                            "question": "Grid",
                            "questionType": "MATRIX_CHECK_BOX",
                            "gridRows": [{"id": "R1", "text": "One"}, {"id": "R2", "text": "Two"}],
                            "gridColumns": [{"id": "C1", "text": "Low"}, {"id": "C2", "text": "High"}],
                        }
                    ],
                }
            ],
        }
    )
    return IdentityResolver(definition).resolve("q-m")


@pytest.mark.parametrize(
    "tag,expected",
    [
        ("RADIO_BOX", QuestionKind.SINGLE_CHOICE),
        ("check-box", QuestionKind.MULTI_CHOICE),
        ("Matrix Radio Box", QuestionKind.MATRIX_RADIO),
        ("LONG_TEXT", QuestionKind.LONG_TEXT),
        ("SIGNATURE", None),
        (None, None),
    ],
)
def test_canonical_kind_accepts_legacy_spellings(tag, expected):
    assert canonical_kind(tag) == expected


def test_scalar_kinds_unwrap_lists_and_mappings():
    assert normalize("SHORT_TEXT", ["A"]) == ScalarValue(value="A")
    assert normalize("SHORT_TEXT", []) == ScalarValue(value="")
    assert normalize("RADIO_BOX", {"value": "red"}) == ScalarValue(value="red")
    assert normalize("RATING", 4) == ScalarValue(value=4)
    assert normalize("BOOLEAN", None) == ScalarValue(value="")


def test_multi_choice_wraps_scalars_and_drops_duplicates():
    assert normalize("CHECK_BOX", "cat") == ScalarSetValue(values=["cat"])
    assert normalize("CHECK_BOX", ["cat", "dog", "cat", ""]) == ScalarSetValue(values=["cat", "dog"])
    assert normalize("CHECK_BOX", None) == ScalarSetValue(values=[])


def test_matrix_accepts_objects_mappings_and_pair_ids(matrix_question):
    rq = matrix_question
    expected = PairSetValue(pairs=[Pair(row_identity="R1", column_identity="C2")])
    assert normalize("MATRIX_CHECK_BOX", [{"rowId": "R1", "columnId": "C2"}], rq) == expected
    assert normalize("MATRIX_CHECK_BOX", {"R1": "C2"}, rq) == expected
    pid = rq.pair_id_for("R1", "C2")
    assert normalize("MATRIX_CHECK_BOX", [pid], rq) == expected
    assert normalize("MATRIX_CHECK_BOX", {"R1": ["C1", "C2"]}, rq).pairs == [
        Pair(row_identity="R1", column_identity="C1"),
        Pair(row_identity="R1", column_identity="C2"),
    ]


def test_matrix_drops_unresolvable_pairs(matrix_question):
    value = normalize("MATRIX_CHECK_BOX", [{"rowId": "R9", "columnId": "C1"}, {"rowId": "R2", "columnId": "C1"}], matrix_question)
    assert value.pairs == [Pair(row_identity="R2", column_identity="C1")]


def test_unknown_type_is_kept_as_permissive_raw():
    value = normalize("SIGNATURE", {"strokes": [1, 2]})
    assert isinstance(value, RawValue)
    assert value.permissive is True
    assert value.value == {"strokes": [1, 2]}


def test_to_display_follows_current_kind():
    assert to_display("CHECK_BOX", ScalarValue(value="cat")) == ["cat"]
    assert to_display("RADIO_BOX", ScalarSetValue(values=["red", "blue"])) == "red"
    pairs = PairSetValue(pairs=[Pair(row_identity="R1", column_identity="C1")])
    assert to_display("MATRIX_RADIO_BOX", pairs) == [{"rowId": "R1", "columnId": "C1"}]
    assert to_display("SHORT_TEXT", pairs) is None
    assert to_display("SHORT_TEXT", None) is None


def test_stored_value_without_kind_loads_as_raw():
    assert load_canonical('"legacy answer"') == RawValue(value="legacy answer")
    assert load_canonical(dump_canonical(ScalarSetValue(values=["a"]))) == ScalarSetValue(values=["a"])
