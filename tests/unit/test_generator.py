"""
Unit tests for the adaptive question generator.

Covers queue priority (retry > cluster > fresh), per-mode fresh
generation, mastery weighting and multiple-choice options.
"""

import random
from collections import Counter

import pytest

from fluency.core.facts import FactorGroup, FactSelection, GameMode, Operator, fact_key
from fluency.core.mastery import MasteryStore
from fluency.study.generator import (
    Candidate,
    GeneratorConfig,
    QuestionGenerator,
    build_options,
    weighted_choice,
)


def make_generator(mode=GameMode.MULTIPLICATION, selection=None, mastery=None, config=None, seed=7):
    return QuestionGenerator(
        mode,
        selection or FactSelection(groups=[FactorGroup.LOW]),
        mastery or MasteryStore(),
        config=config,
        rng=random.Random(seed),
    )


class TestWeightedChoice:
    def test_weak_fact_drawn_about_nine_times_as_often(self, rng):
        """Mastery 0.9 vs 0.1 gives weights 0.1 vs 0.9."""
        strong = Candidate(2, 3, weight=0.1)
        weak = Candidate(4, 5, weight=0.9)

        counts = Counter(
            "weak" if weighted_choice([strong, weak], rng) is weak else "strong"
            for _ in range(20000)
        )
        ratio = counts["weak"] / counts["strong"]
        assert 7.5 < ratio < 10.5

    def test_single_candidate(self, rng):
        only = Candidate(2, 2, weight=0.1)
        assert weighted_choice([only], rng) is only

    def test_empty_candidates_rejected(self, rng):
        with pytest.raises(ValueError):
            weighted_choice([], rng)

    def test_generator_favours_unmastered_fact(self):
        mastery = MasteryStore({"8x8": 1.0, "8x9": 1.0})
        generator = make_generator(selection=FactSelection(groups=[FactorGroup.HIGH]), mastery=mastery)

        keys = Counter(generator.next_question().fact_key for _ in range(5000))
        # weights: 8x8 0.1, 8x9 0.1 + 0.1, 9x9 1.0
        assert keys["9x9"] / 5000 > 0.65
        assert keys["8x8"] > 0


class TestBuildOptions:
    @pytest.mark.parametrize("answer", [1, 4, 9, 24, 81])
    def test_options_unique_positive_sorted_with_answer(self, answer, rng):
        for _ in range(50):
            options = build_options(answer, rng)
            assert len(options) == 4
            assert len(set(options)) == 4
            assert answer in options
            assert all(o >= 1 for o in options)
            assert list(options) == sorted(options)
            assert all(abs(o - answer) <= 10 for o in options)

    def test_window_too_small_for_count_rejected(self):
        with pytest.raises(ValueError):
            GeneratorConfig(option_count=6, distractor_window=3)


class TestRetryQueue:
    def test_missed_question_is_next(self):
        generator = make_generator()
        missed = generator.next_question()
        generator.queue_retry(missed)

        retry = generator.next_question()
        assert retry.is_retry is True
        assert retry.id != missed.id
        assert (retry.factor1, retry.factor2, retry.operator, retry.answer) == (
            missed.factor1,
            missed.factor2,
            missed.operator,
            missed.answer,
        )
        assert not generator.retry_queue

    def test_newest_miss_served_first(self):
        generator = make_generator()
        first = generator.build_question(2, 3)
        second = generator.build_question(4, 4)
        generator.queue_retry(first)
        generator.queue_retry(second)

        assert generator.next_question().fact_key == "4x4"
        assert generator.next_question().fact_key == "2x3"

    def test_retry_preempts_cluster(self):
        config = GeneratorConfig(enable_clusters=True)
        generator = make_generator(config=config)
        generator.cluster_queue.append(generator.build_question(2, 4))
        generator.queue_retry(generator.build_question(3, 3))

        assert generator.next_question().fact_key == "3x3"
        assert generator.next_question().fact_key == "2x4"

    def test_reset_clears_queues(self):
        generator = make_generator()
        generator.queue_retry(generator.build_question(2, 3))
        generator.cluster_queue.append(generator.build_question(2, 4))
        generator.reset()
        assert not generator.retry_queue
        assert not generator.cluster_queue


class TestFreshGeneration:
    def test_practice_factors_come_from_selected_groups(self):
        generator = make_generator()
        for _ in range(200):
            q = generator.next_question()
            assert q.factor1 in (2, 3, 4)
            assert q.factor2 in (2, 3, 4)
            assert q.answer.value == q.factor1 * q.factor2
            assert q.operator is Operator.MULTIPLY

    def test_candidates_cover_cross_product(self):
        generator = make_generator(selection=FactSelection(groups=[FactorGroup.HIGH]))
        pairs = {(c.f1, c.f2) for c in generator.candidates()}
        assert pairs == {(8, 8), (8, 9), (9, 8), (9, 9)}

    def test_division_restates_multiplication_fact(self):
        generator = make_generator(mode=GameMode.DIVISION)
        for _ in range(200):
            q = generator.next_question()
            assert q.operator is Operator.DIVIDE
            assert q.factor1 == q.factor2 * q.answer.value
            assert q.factor2 in (2, 3, 4)
            assert q.answer.value in (2, 3, 4)
            assert q.fact_key == fact_key(q.factor2, q.answer.value)

    def test_tables_mode_uses_selected_table(self):
        selection = FactSelection(tables=[7])
        generator = make_generator(mode=GameMode.TABLES, selection=selection)
        flipped = 0
        for _ in range(300):
            q = generator.next_question()
            assert 7 in (q.factor1, q.factor2)
            other = q.factor2 if q.factor1 == 7 else q.factor1
            assert 1 <= other <= 9
            if q.factor2 == 7 and q.factor1 != 7:
                flipped += 1
        assert flipped > 0

    def test_tables_mode_spreads_over_tables(self):
        selection = FactSelection(tables=[3, 6])
        generator = make_generator(mode=GameMode.TABLES, selection=selection)
        seen = set()
        for _ in range(200):
            q = generator.next_question()
            seen.update({q.factor1, q.factor2} & {3, 6})
        assert seen == {3, 6}

    def test_assessment_ignores_groups_and_mastery(self):
        mastery = MasteryStore({fact_key(a, b): 1.0 for a in range(2, 10) for b in range(2, 10)})
        generator = make_generator(mode=GameMode.ASSESSMENT, mastery=mastery)
        factors = set()
        for _ in range(500):
            q = generator.next_question()
            assert 2 <= q.factor1 <= 9
            assert 2 <= q.factor2 <= 9
            factors.update((q.factor1, q.factor2))
        assert factors == set(range(2, 10))

    def test_every_question_has_fresh_id(self):
        generator = make_generator()
        ids = {generator.next_question().id for _ in range(100)}
        assert len(ids) == 100


class TestClusters:
    def test_weak_fact_stages_related_facts(self):
        generator = make_generator(config=GeneratorConfig(enable_clusters=True))
        first = generator.next_question()
        staged = list(generator.cluster_queue)

        f1, f2 = first.factor1, first.factor2
        expected = 2 if f1 != f2 else 1
        assert len(staged) == expected
        if f1 != f2:
            assert (staged[0].factor1, staged[0].factor2) == (f2, f1)
        neighbour = staged[-1]
        assert neighbour.factor1 == f1
        assert abs(neighbour.factor2 - f2) == 1
        assert neighbour.factor2 in (2, 3, 4)

        served = generator.next_question()
        assert (served.factor1, served.factor2) == (staged[0].factor1, staged[0].factor2)
        assert served.id != staged[0].id

    def test_no_cluster_for_mastered_facts(self):
        mastery = MasteryStore({fact_key(a, b): 0.9 for a in (2, 3, 4) for b in (2, 3, 4)})
        generator = make_generator(mastery=mastery, config=GeneratorConfig(enable_clusters=True))
        generator.next_question()
        assert not generator.cluster_queue

    def test_clusters_off_by_default(self):
        generator = make_generator()
        generator.next_question()
        assert not generator.cluster_queue
