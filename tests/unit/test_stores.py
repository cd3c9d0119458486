"""
Unit tests for the progress stores.

Behavioural tests run against both backends through the ``store`` fixture;
format-specific tests target one backend.
"""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from fluency.core.errors import ProgressStoreError
from fluency.core.facts import GameMode, InputMethod
from fluency.db import KEEP, JsonProgressStore, SqlProgressStore, check_store_health, create_store
from fluency.db.database import check_database_health, make_engine
from fluency.db.json_store import check_json_health
from fluency.study.drill import SessionSummary

T0 = datetime(2024, 5, 14, 15, 0, tzinfo=timezone.utc)


def summary(score=10, total=12, mode=GameMode.MULTIPLICATION, delta=None, tier=None):
    return SessionSummary(
        score=score,
        total=total,
        mode=mode,
        wrong_count=total - score,
        input_method=InputMethod.TYPED,
        selected_groups=["2-4"],
        assessment_tier=tier,
        mastery_delta=delta or {},
    )


class TestStudents:
    def test_missing_student(self, store):
        assert store.get_student("nobody") is None

    def test_upsert_creates_with_defaults(self, store):
        student = store.upsert_student("maya", T0)

        assert student.id == "maya"
        assert student.login_count == 1
        assert (student.xp, student.level, student.streak) == (0, 1, 0)
        assert student.last_streak_update is None
        assert student.fact_mastery == {}
        assert student.sessions == []
        assert student.created_at == T0

    def test_upsert_existing_bumps_login(self, store):
        store.upsert_student("maya", T0)
        later = T0 + timedelta(hours=2)
        student = store.upsert_student("maya", later)

        assert student.login_count == 2
        assert student.last_seen == later
        assert student.created_at == T0

    def test_list_students(self, store):
        store.upsert_student("maya", T0)
        store.upsert_student("leo", T0)
        assert sorted(s.id for s in store.list_students()) == ["leo", "maya"]


class TestSessions:
    def test_append_session_merges_mastery(self, store):
        store.upsert_student("maya", T0)
        store.append_session("maya", summary(delta={"3x7": 0.1, "2x2": 0.3}), T0)
        store.append_session("maya", summary(delta={"3x7": 0.0}), T0 + timedelta(minutes=2))

        student = store.get_student("maya")
        assert student.fact_mastery == {"3x7": pytest.approx(0.0), "2x2": pytest.approx(0.3)}
        assert len(student.sessions) == 2
        assert student.last_seen == T0 + timedelta(minutes=2)

    def test_append_session_creates_missing_student(self, store):
        record = store.append_session("new-kid", summary(score=7, total=9), T0)

        student = store.get_student("new-kid")
        assert student is not None
        assert [s.id for s in student.sessions] == [record.id]
        assert student.sessions[0].score == 7
        assert student.sessions[0].total == 9

    def test_session_fields_round_trip(self, store):
        store.upsert_student("maya", T0)
        store.append_session(
            "maya",
            summary(score=44, total=50, mode=GameMode.ASSESSMENT, tier="Functional automaticity (algebra-ready)"),
            T0,
        )
        stored = store.get_student("maya").sessions[0]

        assert stored.mode == "assessment"
        assert stored.input_method == "typed"
        assert stored.wrong_count == 6
        assert stored.selected_groups == ["2-4"]
        assert stored.assessment_tier == "Functional automaticity (algebra-ready)"
        assert stored.timestamp == T0
        assert stored.accuracy == 88

    def test_score_views(self, store):
        store.append_session("maya", summary(score=10), T0)
        store.append_session("maya", summary(score=20), T0 + timedelta(minutes=1))
        student = store.get_student("maya")

        assert student.best_score == 20
        assert student.average_score == 15
        assert student.last_session.score == 20


class TestUpdateProgress:
    def test_updates_xp_level_and_streak(self, store):
        store.upsert_student("maya", T0)
        store.update_progress("maya", 520, 2, 3, date(2024, 5, 14))

        student = store.get_student("maya")
        assert (student.xp, student.level, student.streak) == (520, 2, 3)
        assert student.last_streak_update == date(2024, 5, 14)

    def test_keep_leaves_streak_fields(self, store):
        store.upsert_student("maya", T0)
        store.update_progress("maya", 10, 1, 2, date(2024, 5, 13))
        store.update_progress("maya", 20, 1)

        student = store.get_student("maya")
        assert student.xp == 20
        assert student.streak == 2
        assert student.last_streak_update == date(2024, 5, 13)

    def test_anchor_can_be_cleared(self, store):
        store.upsert_student("maya", T0)
        store.update_progress("maya", 0, 1, 0, date(2024, 5, 13))
        store.update_progress("maya", 0, 1, streak_anchor=None)
        assert store.get_student("maya").last_streak_update is None

    def test_unknown_student_raises(self, store):
        with pytest.raises(ProgressStoreError) as exc:
            store.update_progress("ghost", 10, 1)
        assert exc.value.student_id == "ghost"

    def test_keep_is_default(self, store):
        store.upsert_student("maya", T0)
        store.update_progress("maya", 5, 1, streak_anchor=KEEP)
        assert store.get_student("maya").xp == 5


class TestJsonStore:
    def test_creates_empty_document(self, tmp_path):
        path = tmp_path / "nested" / "data.json"
        JsonProgressStore(path)
        assert json.loads(path.read_text(encoding="utf-8")) == {"students": {}}

    def test_camel_case_document(self, json_store):
        json_store.append_session("maya", summary(delta={"3x7": 0.1}), T0)
        json_store.update_progress("maya", 100, 1, 1, date(2024, 5, 14))

        raw = json.loads(json_store.path.read_text(encoding="utf-8"))["students"]["maya"]
        assert raw["dailyStreak"] == 1
        assert raw["lastStreakUpdate"] == "2024-05-14"
        assert raw["factMastery"] == {"3x7": 0.1}
        assert raw["sessions"][0]["wrongCount"] == 2
        assert raw["sessions"][0]["inputMethod"] == "typed"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonProgressStore(path)

        assert store.get_student("maya") is None
        assert store.list_students() == []
        store.upsert_student("maya", T0)
        assert store.get_student("maya").login_count == 1

    def test_reads_legacy_sessions(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(
            json.dumps(
                {
                    "students": {
                        "maya": {
                            "id": "maya",
                            "lastSeen": "2024-05-01T12:00:00.000+00:00",
                            "sessions": [
                                {
                                    "id": "abc",
                                    "timestamp": "2024-05-01T12:00:00+00:00",
                                    "score": 30,
                                    "total": 35,
                                    "gameType": "division",
                                }
                            ],
                        }
                    }
                }
            ),
            encoding="utf-8",
        )
        student = JsonProgressStore(path).get_student("maya")

        assert student.xp == 0
        assert student.level == 1
        assert student.sessions[0].mode == "division"
        assert student.created_at == student.last_seen

    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "data.json"
        JsonProgressStore(path).append_session("maya", summary(), T0)
        assert JsonProgressStore(path).get_student("maya").sessions[0].score == 10

    def test_write_failure_is_store_error(self, tmp_path):
        store = JsonProgressStore(tmp_path / "data.json")
        store.path = tmp_path  # a directory cannot be opened for writing
        with pytest.raises(ProgressStoreError):
            store.upsert_student("maya", T0)


class TestSqlStore:
    def test_health_check(self):
        engine = make_engine("sqlite://")
        SqlProgressStore(engine)
        assert check_database_health(engine) == ("ok", None)

    def test_stores_are_isolated(self):
        a = SqlProgressStore(make_engine("sqlite://"))
        b = SqlProgressStore(make_engine("sqlite://"))
        a.upsert_student("maya", T0)
        assert b.get_student("maya") is None


class TestStoreHealth:
    def test_missing_json_file_is_healthy(self, tmp_path):
        assert check_json_health(tmp_path / "later.json") == ("ok", None)

    def test_written_json_file_is_healthy(self, json_store):
        json_store.upsert_student("maya", T0)
        assert check_json_health(json_store.path) == ("ok", None)

    def test_corrupt_json_file_reports_error(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("{not json", encoding="utf-8")
        status, error = check_json_health(path)
        assert status == "error"
        assert error

    def test_json_without_students_reports_error(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("[]", encoding="utf-8")
        assert check_json_health(path)[0] == "error"

    def test_sql_backend(self, settings):
        assert check_store_health(settings) == ("ok", None)

    def test_bad_database_url(self, settings):
        settings.database_url = "not-a-url"
        assert check_store_health(settings)[0] == "error"

    def test_json_backend(self, settings):
        settings.progress_backend = "json"
        assert check_store_health(settings) == ("ok", None)


class TestCreateStore:
    def test_json_backend(self, settings):
        settings.progress_backend = "json"
        assert isinstance(create_store(settings), JsonProgressStore)

    def test_sql_backend(self, settings):
        assert isinstance(create_store(settings), SqlProgressStore)
