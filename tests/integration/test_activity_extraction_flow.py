"""استخراج فعالیت از متن آزاد با مدل زبانی جایگزین."""
from __future__ import annotations

import json
from datetime import date
from types import SimpleNamespace

import pytest

from daftar.core.common.errors import ExtractionError
from daftar.core.config_loader import parse_settings_dict
from daftar.infra.activity_extraction import EMPTY_TEXT_MESSAGE, extract_activity

TODAY = date(2025, 3, 27)
SETTINGS = parse_settings_dict({}, environ={})


class RecordingClient:
    def __init__(self, payload) -> None:
        self.content = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=self)

    def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_extraction_returns_draft_without_writing(school_db, teacher):
    client = RecordingClient(
        {
            "student_name": "علی رضایی",
            "activity_type": "class_activity",
            "quantitative_score": 19,
            "qualitative_evaluation": "مشارکت عالی",
            "subject_name": "علوم",
            "activity_title": None,
            "activity_date": "1404/01/06",
        }
    )
    payload = extract_activity(
        school_db, teacher, "علی رضایی دیروز در علوم فعالیت کلاسی عالی داشت، ۱۹", client=client,
        settings=SETTINGS, today=TODAY,
    )

    assert payload["success"] is True
    data = payload["data"]
    assert data["student_id"] == "st1"
    assert data["class_id"] == "c1"
    assert data["subject_id"] == "l2"
    assert data["activity_type"] == "class_activity"
    assert data["activity_title"] == "فعالیت کلاسی"
    assert data["activity_date"] == "2025-03-26"
    assert data["quantitative_score"] == 19.0
    assert data["missing_fields"] == []
    assert school_db.fetch_activities() == []

    (call,) = client.calls
    system_prompt = call["messages"][0]["content"]
    assert "1404/01/07" in system_prompt
    assert call["response_format"] == {"type": "json_object"}


def test_profile_preference_selects_local_model(school_db, other_teacher):
    client = RecordingClient('```json\n{"student_name": "سارا"}\n```')
    payload = extract_activity(school_db, other_teacher, "سارا امروز غایب بود", client=client, settings=SETTINGS, today=TODAY)

    assert payload["success"] is True
    assert payload["data"]["student_id"] == "st4"
    assert payload["data"]["missing_fields"] == ["activity_type"]
    assert payload["data"]["activity_date"] == "2025-03-27"
    assert client.calls[0]["model"] == SETTINGS.language_model.local.model
    assert client.calls[0]["response_format"] == {"type": "text"}


def test_unknown_student_lists_teachers_roster(school_db, teacher):
    client = RecordingClient({"student_name": "سارا احمدی", "activity_type": "weekly_exam"})
    payload = extract_activity(school_db, teacher, "سارا احمدی ۱۵ گرفت", client=client, settings=SETTINGS, today=TODAY)

    assert payload["success"] is False
    assert payload["extracted_name"] == "سارا احمدی"
    assert payload["available_students"] == ["زهرا محمدی", "علی رضایی", "علی رضایی‌نژاد"]


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_text_is_rejected(school_db, teacher, text):
    with pytest.raises(ExtractionError) as excinfo:
        extract_activity(school_db, teacher, text, client=RecordingClient({}), settings=SETTINGS)
    assert excinfo.value.message == EMPTY_TEXT_MESSAGE


def test_garbled_model_output_is_extraction_error(school_db, teacher):
    with pytest.raises(ExtractionError):
        extract_activity(school_db, teacher, "متن", client=RecordingClient("نمی‌دانم"), settings=SETTINGS)
