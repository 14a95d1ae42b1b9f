"""Tests for epsilon-greedy exploration and the value-table helpers."""

import numpy as np
import pytest

from nim_rl.agents_rl.base import (
    DecayCadence,
    EpsilonGreedyPolicy,
    TimeStep,
    ValueTable,
    format_trajectory,
    format_values,
)
from nim_rl.state import Action, State

LEGAL = [Action(0, 1), Action(0, 2), Action(1, 1), Action(1, 2)]
GREEDY = [Action(1, 1)]


class TestEpsilonGreedyPolicy:
    """Tests for action selection and decay."""

    def test_epsilon_zero_is_greedy(self):
        policy = EpsilonGreedyPolicy(epsilon=0.0, seed=0)
        for _ in range(200):
            assert policy.select_action(LEGAL, GREEDY) == Action(1, 1)

    def test_epsilon_zero_breaks_ties_at_random(self):
        policy = EpsilonGreedyPolicy(epsilon=0.0, seed=0)
        picks = {policy.select_action(LEGAL, LEGAL[:2]) for _ in range(200)}
        assert picks == set(LEGAL[:2])

    def test_epsilon_one_is_uniform(self):
        policy = EpsilonGreedyPolicy(epsilon=1.0, seed=1)
        counts = {action: 0 for action in LEGAL}
        n = 4000
        for _ in range(n):
            counts[policy.select_action(LEGAL, GREEDY)] += 1
        for count in counts.values():
            assert count / n == pytest.approx(0.25, abs=0.04)

    def test_action_probabilities(self):
        policy = EpsilonGreedyPolicy(epsilon=0.2)
        probs = policy.action_probabilities(LEGAL, GREEDY)
        assert probs.sum() == pytest.approx(1.0)
        assert probs[2] == pytest.approx(0.05 + 0.8)
        assert probs[0] == pytest.approx(0.05)

    def test_action_probabilities_split_over_ties(self):
        policy = EpsilonGreedyPolicy(epsilon=0.0)
        probs = policy.action_probabilities(LEGAL, LEGAL[:2])
        np.testing.assert_allclose(probs, [0.5, 0.5, 0.0, 0.0])

    def test_update_epsilon_respects_floor(self):
        policy = EpsilonGreedyPolicy(epsilon=1.0, epsilon_decay_factor=0.5, min_epsilon=0.2)
        policy.update_epsilon()
        assert policy.epsilon == pytest.approx(0.5)
        policy.update_epsilon()
        policy.update_epsilon()
        assert policy.epsilon == pytest.approx(0.2)

    def test_decay_only_on_configured_cadence(self):
        policy = EpsilonGreedyPolicy(epsilon=1.0, epsilon_decay_factor=0.5, cadence=DecayCadence.STEP)
        policy.decay(DecayCadence.EPISODE)
        assert policy.epsilon == pytest.approx(1.0)
        policy.decay(DecayCadence.STEP)
        assert policy.epsilon == pytest.approx(0.5)

    def test_same_seed_same_choices(self):
        first = EpsilonGreedyPolicy(epsilon=0.5, seed=3)
        second = EpsilonGreedyPolicy(epsilon=0.5, seed=3)
        assert [first.select_action(LEGAL, GREEDY) for _ in range(50)] == [
            second.select_action(LEGAL, GREEDY) for _ in range(50)
        ]


class TestValueTable:
    """Tests for the afterstate value store."""

    def test_missing_reads_zero_without_inserting(self):
        values = ValueTable()
        assert values[State([1, 2])] == 0.0
        assert State([1, 2]) not in values

    def test_keys_are_multisets(self):
        values = ValueTable()
        values[State([1, 2])] = 0.5
        assert values[State([2, 1])] == 0.5

    def test_format_values_is_sorted(self):
        values = ValueTable({State([2, 1]): -1.0, State([0, 0]): 1.0})
        assert format_values(values) == "0 0: 1.000000\n2 1: -1.000000"
        assert str(values) == format_values(values)

    def test_format_trajectory(self):
        trajectory = [TimeStep(State([1, 1]), Action(0, 1), 0.0), TimeStep(State([0, 1]), Action(1, 1), 1.0)]
        lines = format_trajectory(trajectory).splitlines()
        assert lines == [
            "1 1 | From pile 0 remove 1 object | 0.0",
            "0 1 | From pile 1 remove 1 object | 1.0",
        ]
