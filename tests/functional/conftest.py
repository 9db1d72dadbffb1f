"""Functional test bootstrap.

Points the engine at a file-backed SQLite database before any import of
`survey_engine.main`, applies the SQLite migrations once per session and
wipes every table between tests. Definition fixtures seed the surveys the
tests share.
"""

from __future__ import annotations

import os
import pathlib
from typing import Any, Dict, List

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Use a file-backed SQLite DB to ensure persistence across connections
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Disable app startup auto-migrations; we apply SQLite migrations explicitly
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"
os.environ.setdefault("FRONTEND_URL", "https://surveys.example.test")

_TABLES = ("response", "response_instance", "survey_page", "survey")


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap() -> None:
    """Session-level bootstrap: apply migrations once for the shared DB."""
    from survey_engine.config import get_config
    from survey_engine.db.base import get_engine
    from survey_engine.db.migrations_runner import apply_migrations

    get_config.cache_clear()
    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine, migrations_dir=str(_ROOT / "sqlite_migrations"))
    yield


@pytest.fixture(autouse=True)
def clean_tables() -> None:
    from sqlalchemy import text as sql_text

    from survey_engine.db.base import get_engine
    from survey_engine.logic import events

    with get_engine().begin() as conn:
        for table in _TABLES:
            conn.execute(sql_text(f"DELETE FROM {table}"))
    events.get_buffered_events(clear=True)
    yield


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from survey_engine.main import create_app

    with TestClient(create_app()) as c:
        yield c


# ----------------------------------------------------------------------------
# Definition builders
# ----------------------------------------------------------------------------


def _seed(payload: Dict[str, Any], settings: Dict[str, Any] | None = None):
    from survey_engine.logic.repository_definitions import store_definition
    from survey_engine.models.definition import SurveyDefinition

    definition = SurveyDefinition.model_validate(payload)
    store_definition(definition, settings=settings)
    return definition


def choice_question(question_id: str = "q-colour", ordinal: str = "1") -> Dict[str, Any]:
    return {
        "questionId": question_id,
        "uniqueOrder": ordinal,
        "question": "Favourite colour?",
        "questionType": "RADIO_BOX",
        "options": [
            {"id": "opt-red", "text": "Red", "value": "red"},
            {"id": "opt-blue", "text": "Blue", "value": "blue"},
            {"id": "opt-green", "text": "Green", "value": "green"},
        ],
    }


def multi_question(question_id: str = "q-pets", ordinal: str = "2") -> Dict[str, Any]:
    return {
        "questionId": question_id,
        "uniqueOrder": ordinal,
        "question": "Which pets do you own?",
        "questionType": "CHECK_BOX",
        "options": [
            {"id": "opt-cat", "text": "Cat", "value": "cat"},
            {"id": "opt-dog", "text": "Dog", "value": "dog"},
        ],
    }


def matrix_question(question_id: str = "q-grid", ordinal: str = "3") -> Dict[str, Any]:
    return {
        "questionId": question_id,
        "uniqueOrder": ordinal,
        "question": "Rate each statement",
        "questionType": "MATRIX_RADIO_BOX",
        "gridRows": [
            {"id": "R1", "text": "Service was fast", "uniqueOrder": "1"},
            {"id": "R2", "text": "Staff were friendly", "uniqueOrder": "2"},
        ],
        "gridColumns": [
            {"id": "C1", "text": "Disagree", "uniqueOrder": "1", "weight": 1},
            {"id": "C2", "text": "Agree", "uniqueOrder": "2", "weight": 3},
        ],
    }


def text_question(question_id: str = "q-notes", ordinal: str = "4") -> Dict[str, Any]:
    return {
        "questionId": question_id,
        "uniqueOrder": ordinal,
        "question": "Anything else?",
        "questionType": "LONG_TEXT",
    }


def survey_payload(survey_id: str = "s-1", status: str = "active") -> Dict[str, Any]:
    pages: List[Dict[str, Any]] = [
        {
            "page_id": "p-1",
            "title": "About you",
            "questions": [choice_question(), multi_question(), matrix_question()],
        },
        {"page_id": "p-2", "title": "Wrap up", "questions": [text_question()]},
    ]
    return {"survey_id": survey_id, "title": "Customer Survey", "status": status, "pages": pages}


@pytest.fixture
def survey_definition():
    """Active two-page survey with choice, multi-choice, matrix and text questions."""
    return _seed(survey_payload(), settings={"header_enabled": True, "time_limit_enabled": True, "time_limit": 10})


@pytest.fixture
def inactive_definition():
    return _seed(survey_payload("s-closed", status="closed"))


@pytest.fixture
def seed_definition():
    """Seed an arbitrary definition payload; returns the stored snapshot."""
    return _seed


@pytest.fixture
def definition_snapshot():
    """The shared survey as an in-memory snapshot, not stored."""
    from survey_engine.models.definition import SurveyDefinition

    return SurveyDefinition.model_validate(survey_payload())
