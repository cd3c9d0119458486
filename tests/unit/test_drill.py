"""
Unit tests for timed drills and session summaries.
"""

import random

from fluency.core.facts import FactorGroup, FactSelection, GameMode, InputMethod
from fluency.core.mastery import MasteryStore
from fluency.study.drill import TimedDrill, build_drill


def make_drill(settings, scheduler, mode=GameMode.MULTIPLICATION, **kwargs):
    completed = []
    drill = build_drill(
        settings,
        scheduler,
        mode,
        FactSelection(groups=[FactorGroup.LOW, FactorGroup.HIGH]),
        rng=random.Random(3),
        on_complete=completed.append,
        **kwargs,
    )
    return drill, completed


def answer(drill):
    return drill.session.current_question.answer.display


class TestCountdown:
    def test_drill_ends_when_time_runs_out(self, settings, scheduler):
        drill, completed = make_drill(settings, scheduler)
        drill.start()

        scheduler.advance(59.5)
        assert not drill.completed

        scheduler.advance(0.5)
        assert drill.completed
        assert drill.summary.end_reason == "time"
        assert completed == [drill.summary]
        assert drill.session.running is False
        assert scheduler.pending == 0

    def test_remaining_seconds(self, settings, scheduler):
        drill, _ = make_drill(settings, scheduler)
        assert drill.remaining_seconds is None
        drill.start()
        scheduler.advance(10)
        assert drill.remaining_seconds == 50
        scheduler.advance(60)
        assert drill.remaining_seconds == 0

    def test_untimed_drill_runs_until_stopped(self, settings, scheduler):
        drill, completed = make_drill(settings, scheduler, timer_enabled=False)
        drill.start()
        scheduler.advance(600)

        assert drill.timed is False
        assert drill.remaining_seconds is None
        assert not drill.completed

        summary = drill.stop()
        assert summary.end_reason == "stopped"
        assert completed == [summary]


class TestAssessmentCap:
    def test_sixty_answers_end_assessment(self, settings, scheduler):
        drill, completed = make_drill(settings, scheduler, mode=GameMode.ASSESSMENT)
        drill.start()

        for _ in range(60):
            assert drill.session.enter_input(answer(drill)) is not None

        assert drill.completed
        summary = drill.summary
        assert summary.end_reason == "question_cap"
        assert summary.score == 60
        assert summary.total == 60
        assert summary.assessment_tier == "Strong automaticity"
        assert drill.session.enter_input(answer(drill)) is None
        assert scheduler.pending == 0
        assert len(completed) == 1

    def test_cap_does_not_apply_to_practice(self, settings, scheduler):
        drill, _ = make_drill(settings, scheduler, timer_enabled=False)
        drill.start()
        for _ in range(61):
            drill.session.enter_input(answer(drill))
            scheduler.advance(0.5)
        assert not drill.completed
        assert drill.stats.correct == 61


class TestSummary:
    def test_summary_fields(self, settings, scheduler):
        mastery = MasteryStore({"2x2": 0.5})
        drill, _ = make_drill(
            settings,
            scheduler,
            input_method=InputMethod.MULTIPLE_CHOICE,
            mastery=mastery,
        )
        drill.start()
        key = drill.session.current_question.fact_key
        drill.session.select_option(drill.session.current_question.answer.value)
        summary = drill.stop()

        assert summary.score == 1
        assert summary.total == 1
        assert summary.wrong_count == 0
        assert summary.mode is GameMode.MULTIPLICATION
        assert summary.input_method is InputMethod.MULTIPLE_CHOICE
        assert summary.selected_groups == ["2-4", "8-9"]
        assert summary.assessment_tier is None
        assert list(summary.mastery_delta) == [key]

    def test_to_dict_uses_plain_values(self, settings, scheduler):
        drill, _ = make_drill(settings, scheduler)
        drill.start()
        data = drill.stop().to_dict()
        assert data["mode"] == "multiplication"
        assert data["input_method"] == "typed"
        assert data["end_reason"] == "stopped"

    def test_stop_is_idempotent(self, settings, scheduler):
        drill, completed = make_drill(settings, scheduler)
        drill.start()
        first = drill.stop()
        assert drill.stop() is first
        scheduler.advance(120)
        assert completed == [first]

    def test_restart_after_completion(self, settings, scheduler):
        drill, completed = make_drill(settings, scheduler)
        drill.start()
        scheduler.advance(60)
        drill.start()
        assert not drill.completed
        assert drill.stats.total == 0
        scheduler.advance(60)
        assert len(completed) == 2


def test_drill_wraps_existing_session(settings, scheduler):
    drill, _ = make_drill(settings, scheduler)
    other = TimedDrill(drill.session, duration_seconds=5)
    other.start()
    scheduler.advance(5)
    assert other.completed
    assert other.summary.end_reason == "time"
