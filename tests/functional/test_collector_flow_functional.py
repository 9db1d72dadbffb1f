"""Functional tests for the collector session flow.

Cover respondent identification, page rendering with stored answers,
submission and completion, and the preview, inactive survey and ownership
rules.
"""

from __future__ import annotations

import re

import pytest

from survey_engine.config import CollectorConfig, get_config
from survey_engine.errors import (
    InvalidOwnership,
    MissingRequesterAddress,
    NotFound,
    SurveyAlreadyCompleted,
    SurveyNotActive,
)
from survey_engine.logic import events
from survey_engine.logic import repository_definitions as definitions
from survey_engine.logic import repository_instances as instances
from survey_engine.logic import repository_responses as responses
from survey_engine.logic.collector_flow import (
    delete_instance_response,
    list_instance_responses,
    normalize_address,
    render_page,
    save_instance_response,
    submit_responses,
)
from survey_engine.logic.reporting import question_analytics
from survey_engine.models.canonical import PairSetValue, ScalarSetValue, ScalarValue
from survey_engine.models.response_types import Caller, SubmissionItem, SubmissionMetadata

ANON = Caller(ip_address="203.0.113.7", user_agent="pytest", referer="https://site.test/s")


def _items(*pairs):
    return [SubmissionItem(question_identity=q, raw_value=v) for q, v in pairs]


# ----------------------------------------------------------------------------
# Respondent identification
# ----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("::1", "127.0.0.1"),
        ("::ffff:127.0.0.1", "127.0.0.1"),
        ("localhost", "127.0.0.1"),
        ("127.0.0.5", "127.0.0.1"),
        ("::ffff:203.0.113.7", "203.0.113.7"),
        (" 203.0.113.7 , 10.0.0.1", "203.0.113.7"),
        ("[2001:db8::1]", "2001:db8::1"),
        ("not-an-ip", "not-an-ip"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_address(raw, expected):
    assert normalize_address(raw, CollectorConfig()) == expected


def test_loopback_spellings_share_one_instance(survey_definition):
    first = render_page("s-1", caller=Caller(ip_address="::1"))
    second = render_page("s-1", caller=Caller(ip_address="127.0.0.1"))
    assert first.instance_id == second.instance_id


def test_anonymous_caller_without_address_is_rejected(survey_definition):
    with pytest.raises(MissingRequesterAddress):
        render_page("s-1", caller=Caller())


# ----------------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------------


def test_first_page_render_creates_instance_and_counts_visit(survey_definition):
    page = render_page("s-1", caller=ANON)
    assert page.instance_id is not None
    assert page.page_id == "p-1"
    assert page.current_page_number == 1 and page.total_pages == 2
    assert page.previous_page_id is None and page.next_page_id == "p-2"
    assert [q.question_id for q in page.questions] == ["q-colour", "q-pets", "q-grid"]
    assert page.settings.header_enabled is True
    assert page.settings.time_limit == 10

    grid = page.questions[2]
    assert [r.id for r in grid.rows] == ["R1", "R2"]
    assert [c.weight for c in grid.columns] == [1.0, 3.0]
    assert len(grid.pairs) == 4

    render_page("s-1", "p-2", caller=ANON)
    row = definitions.fetch_survey_row("s-1")
    assert row["visit_count"] == 2
    assert row["response_count"] == 1
    inst = instances.get_instance(page.instance_id)
    assert inst.status == instances.STATUS_NOT_STARTED
    assert inst.total_questions == 4


def test_preview_never_creates_instances_or_counts_visits(survey_definition, inactive_definition):
    page = render_page("s-1", caller=ANON, preview=True)
    assert page.preview is True and page.instance_id is None
    closed = render_page("s-closed", caller=ANON, preview=True)
    assert closed.title == "Customer Survey"
    assert definitions.fetch_survey_row("s-1")["visit_count"] == 0
    assert instances.list_instances("s-1") == []


def test_inactive_survey_is_rejected(inactive_definition):
    with pytest.raises(SurveyNotActive):
        render_page("s-closed", caller=ANON)
    with pytest.raises(SurveyNotActive):
        submit_responses("s-closed", caller=ANON, items=[])


def test_unknown_page_is_not_found(survey_definition):
    with pytest.raises(NotFound):
        render_page("s-1", "p-9", caller=ANON)


def test_render_overlays_stored_answers(survey_definition):
    submit_responses(
        "s-1",
        caller=ANON,
        items=_items(("q-colour", ["red"]), ("q-pets", "cat"), ("q-grid", {"R1": "C2"})),
    )
    page = render_page("s-1", caller=ANON)
    answers = {q.question_id: q.answer for q in page.questions}
    assert answers["q-colour"] == "red"
    assert answers["q-pets"] == ["cat"]
    assert answers["q-grid"] == [{"rowId": "R1", "columnId": "C2"}]


# ----------------------------------------------------------------------------
# Submission and completion
# ----------------------------------------------------------------------------


def test_submit_normalizes_and_stores_under_effective_identity(survey_definition):
    inst = submit_responses(
        "s-1",
        caller=ANON,
        items=[
            SubmissionItem(question_identity="1", raw_value=["blue"]),
            SubmissionItem(question_identity="q-pets", raw_value="dog", page_index=0),
            SubmissionItem(question_identity="q-grid", raw_value=[{"rowId": "R2", "columnId": "C1"}]),
        ],
    )
    assert inst.status == instances.STATUS_IN_PROGRESS
    assert inst.answered_question_count == 3
    stored = {r.question_id: r for r in list_instance_responses(inst.instance_id, caller=ANON)}
    assert stored["q-colour"].value == ScalarValue(value="blue")
    assert stored["q-colour"].page_index == 0
    assert stored["q-pets"].value == ScalarSetValue(values=["dog"])
    assert isinstance(stored["q-grid"].value, PairSetValue)
    assert inst.user_agent == "pytest"
    assert inst.survey_url == "https://site.test/s"


def test_resubmission_retires_answer_stored_under_older_key(survey_definition):
    instance_id = render_page("s-1", caller=ANON).instance_id
    older = responses.upsert_response(instance_id, "1", "RADIO_BOX", ScalarValue(value="red"), survey_id="s-1")
    responses.upsert_response(instance_id, "q-notes", "LONG_TEXT", ScalarValue(value="kept"), survey_id="s-1")

    submit_responses("s-1", caller=ANON, items=_items(("1", "blue")))

    stored = {r.question_id: r.value for r in list_instance_responses(instance_id, caller=ANON)}
    assert stored == {"q-colour": ScalarValue(value="blue"), "q-notes": ScalarValue(value="kept")}
    summary = question_analytics("s-1", "q-colour")
    assert {c.label: c.count for c in summary.counts} == {"Blue": 1}
    deleted = [e for e in events.get_buffered_events() if e["type"] == events.RESPONSE_DELETED]
    assert [e["payload"]["response_id"] for e in deleted] == [older.response_id]


def test_unresolved_item_is_kept_under_sent_identity(survey_definition):
    inst = submit_responses(
        "s-1",
        caller=ANON,
        items=[SubmissionItem(question_identity="gone", type_tag="SHORT_TEXT", raw_value="x")],
    )
    [stored] = list_instance_responses(inst.instance_id, caller=ANON)
    assert stored.question_id == "gone"
    assert stored.value == ScalarValue(value="x")


def test_completion_sets_code_link_and_blocks_resubmission(survey_definition):
    inst = submit_responses(
        "s-1",
        caller=ANON,
        items=_items(("q-notes", "All good")),
        complete=True,
        metadata=SubmissionMetadata(collector="Email", tags=["vip"]),
    )
    assert inst.status == instances.STATUS_COMPLETED
    assert re.fullmatch(r"[A-Za-z0-9]{8}", inst.response_code)
    base = get_config().collector.frontend_url
    assert inst.response_link == f"{base}/survey/s-1/response/{inst.response_code}"
    assert inst.collector == "Email"
    assert inst.tags == ["vip"]
    assert inst.time_taken_seconds is not None and inst.time_taken_seconds >= 0
    completed = [e for e in events.get_buffered_events() if e["type"] == events.RESPONSE_INSTANCE_COMPLETED]
    assert completed[0]["payload"]["response_code"] == inst.response_code

    with pytest.raises(SurveyAlreadyCompleted):
        submit_responses("s-1", caller=ANON, items=_items(("q-notes", "again")))
    with pytest.raises(SurveyAlreadyCompleted):
        save_instance_response(inst.instance_id, SubmissionItem(question_identity="q-notes", raw_value="x"), caller=ANON)


def test_default_collector_name(survey_definition):
    inst = submit_responses("s-1", caller=ANON, items=[], complete=True)
    assert inst.collector == "Web Link"


def test_response_codes_are_unique(survey_definition):
    codes = {
        submit_responses("s-1", caller=Caller(ip_address=f"198.51.100.{i}"), items=[], complete=True).response_code
        for i in range(1, 6)
    }
    assert len(codes) == 5


# ----------------------------------------------------------------------------
# Ownership
# ----------------------------------------------------------------------------


def test_authenticated_instances_are_private(survey_definition):
    owner = Caller(user_id="u-1", ip_address="203.0.113.7")
    inst = submit_responses("s-1", caller=owner, items=_items(("q-notes", "mine")))
    assert inst.user_id == "u-1"

    with pytest.raises(InvalidOwnership):
        list_instance_responses(inst.instance_id, caller=ANON)
    with pytest.raises(InvalidOwnership):
        save_instance_response(
            inst.instance_id, SubmissionItem(question_identity="q-notes", raw_value="x"), caller=Caller(user_id="u-2")
        )
    saved = save_instance_response(
        inst.instance_id, SubmissionItem(question_identity="q-notes", raw_value="edited"), caller=owner
    )
    assert saved.value == ScalarValue(value="edited")


def test_deleting_an_answer_requires_the_owner(survey_definition):
    owner = Caller(user_id="u-1", ip_address="203.0.113.7")
    inst = submit_responses("s-1", caller=owner, items=_items(("q-notes", "mine")))
    [stored] = list_instance_responses(inst.instance_id, caller=owner)

    with pytest.raises(InvalidOwnership):
        delete_instance_response(stored.response_id, caller=ANON)
    assert list_instance_responses(inst.instance_id, caller=owner) == [stored]

    removed = delete_instance_response(stored.response_id, caller=owner)
    assert removed.response_id == stored.response_id
    assert list_instance_responses(inst.instance_id, caller=owner) == []
    with pytest.raises(NotFound):
        delete_instance_response(stored.response_id, caller=owner)
