"""Tests for the Monte Carlo agents."""

import pytest

from nim_rl.agents_rl import (
    ESMonteCarloAgent,
    ImportanceSampling,
    MonteCarloAgent,
    OffPolicyMonteCarloAgent,
    OnPolicyMonteCarloAgent,
    OptimalAgent,
    RandomAgent,
)
from nim_rl.agents_rl.base import TimeStep
from nim_rl.game import Game
from nim_rl.state import Action, State


class TestReturns:
    """Tests for the return computation and the first-visit update."""

    def test_calculate_returns_discounts_backwards(self):
        agent = MonteCarloAgent(gamma=0.5)
        trajectory = [
            TimeStep(State([3]), Action(0, 1), 0.0),
            TimeStep(State([1]), Action(0, 1), 1.0),
        ]
        returns = agent.calculate_returns(trajectory)
        assert [G for _, _, G in returns] == [pytest.approx(0.5), pytest.approx(1.0)]

    def test_terminal_update_averages_returns(self):
        agent = MonteCarloAgent(gamma=1.0)
        agent.trajectory = [TimeStep(State([3]), Action(0, 1)), TimeStep(State([1]), Action(0, 1))]
        agent.update(State([0]), State([0]), 1.0)

        assert agent.trajectory == []
        assert agent.values[State([2])] == pytest.approx(1.0)
        assert agent.values[State([0])] == pytest.approx(1.0)

        agent.trajectory = [TimeStep(State([3]), Action(0, 1))]
        agent.update(State([2]), State([0]), -1.0)
        assert agent.values[State([2])] == pytest.approx(0.0)
        assert agent.cumulative_sums[State([2])] == 2

    def test_non_terminal_update_only_accumulates_reward(self):
        agent = MonteCarloAgent()
        agent.trajectory = [TimeStep(State([3]), Action(0, 1))]
        agent.update(State([2]), State([1]), 0.5)
        assert agent.trajectory[0].reward == 0.5
        assert agent.values[State([2])] == 0.0

    def test_first_visit_only(self):
        agent = MonteCarloAgent(gamma=1.0)
        agent.trajectory = [
            TimeStep(State([2, 2]), Action(0, 1)),
            TimeStep(State([1, 3]), Action(1, 1)),
        ]
        # Both moves lead to the multiset {1, 2}; only the first visit counts.
        agent.update(State([1, 1]), State([0, 0]), 1.0)
        assert agent.cumulative_sums[State([1, 2])] == 1
        assert agent.values[State([1, 2])] == pytest.approx(1.0)

    def test_reset_clears_trajectory(self):
        agent = MonteCarloAgent()
        agent.trajectory = [TimeStep(State([3]), Action(0, 1))]
        agent.reset()
        assert agent.trajectory == []


class TestBehavior:
    def test_behavior_probability_is_recorded(self):
        agent = OnPolicyMonteCarloAgent(epsilon=1.0, seed=0)
        opponent = RandomAgent(seed=1)
        game = Game(State([1, 2]), agent, opponent)
        game.reset()
        agent.step(game)
        assert agent.trajectory[0].behavior_prob == pytest.approx(1 / 3)

    def test_evaluation_records_nothing(self):
        agent = OnPolicyMonteCarloAgent(seed=0)
        opponent = RandomAgent(seed=1)
        game = Game(State([1, 2]), agent, opponent)
        game.reset()
        agent.step(game, is_evaluation=True)
        assert agent.trajectory == []

    def test_exploring_start_is_uniform(self):
        agent = ESMonteCarloAgent(seed=0)
        opponent = RandomAgent(seed=1)
        game = Game(State([1, 2]), agent, opponent)
        agent.values[State([1, 1])] = 1.0
        first_actions = set()
        for _ in range(60):
            game.reset()
            first_actions.add(agent.step(game))
        assert first_actions == set(State([1, 2]).legal_actions())


@pytest.mark.parametrize(
    "make_agent",
    [
        lambda: MonteCarloAgent(seed=0),
        lambda: ESMonteCarloAgent(seed=0),
        lambda: OnPolicyMonteCarloAgent(seed=0),
        lambda: OffPolicyMonteCarloAgent(seed=0),
        lambda: OffPolicyMonteCarloAgent(importance_sampling=ImportanceSampling.NORMAL, seed=0),
    ],
    ids=["greedy", "exploring_starts", "on_policy", "off_policy_weighted", "off_policy_normal"],
)
class TestLearning:
    """Every Monte Carlo agent must learn the winning move of [1, 2] against a perfect player."""

    def test_learns_winning_move(self, make_agent):
        agent = make_agent()
        opponent = OptimalAgent(seed=1)
        game = Game(State([1, 2]), agent, opponent)
        game.train(300, verbose=False)

        state = State([1, 2])
        assert agent.find_greedy_actions(state, state.legal_actions()) == [Action(1, 1)]
        assert agent.values[State([1, 1])] == pytest.approx(1.0)
        assert game.play(20).first_wins == 20


class TestOffPolicyUpdates:
    """Tests for the importance-sampling updates on hand-made episodes."""

    @staticmethod
    def run_episode(agent, steps, reward=1.0):
        agent.trajectory = list(steps)
        agent.update(State([0, 0]), State([0, 0]), reward)

    def greedy_episode(self):
        return [
            TimeStep(State([3, 3]), Action(0, 1), 0.0, 0.5),
            TimeStep(State([2, 2]), Action(0, 1), 0.0, 0.25),
        ]

    def test_weighted_formula(self):
        agent = OffPolicyMonteCarloAgent(gamma=0.5)
        agent.cumulative_sums[State([2, 3])] = 2.0
        agent.values[State([2, 3])] = -1.0
        self.run_episode(agent, self.greedy_episode())

        assert agent.values[State([1, 2])] == pytest.approx(1.0)
        # W = 0.5 / 0.25 at the first step; C = 2 + W
        assert agent.cumulative_sums[State([2, 3])] == pytest.approx(4.0)
        assert agent.values[State([2, 3])] == pytest.approx(-1.0 + 2.0 / 4.0 * (0.5 + 1.0))

    def test_normal_formula(self):
        agent = OffPolicyMonteCarloAgent(gamma=0.5, importance_sampling=ImportanceSampling.NORMAL)
        agent.cumulative_sums[State([2, 3])] = 2.0
        agent.values[State([2, 3])] = -1.0
        self.run_episode(agent, self.greedy_episode())

        assert agent.values[State([1, 2])] == pytest.approx(1.0)
        assert agent.cumulative_sums[State([2, 3])] == 3
        assert agent.values[State([2, 3])] == pytest.approx(-1.0 + (2.0 * 0.5 + 1.0) / 3.0)

    def test_weighted_stops_at_non_greedy_action(self):
        agent = OffPolicyMonteCarloAgent(gamma=1.0)
        agent.values[State([0, 2])] = 5.0
        agent.values[State([2, 3])] = 0.8
        self.run_episode(agent, self.greedy_episode())

        assert agent.cumulative_sums[State([1, 2])] == 1
        assert State([2, 3]) not in agent.cumulative_sums
        assert agent.values[State([2, 3])] == 0.8

    def test_normal_counts_zero_weight_returns(self):
        agent = OffPolicyMonteCarloAgent(gamma=1.0, importance_sampling=ImportanceSampling.NORMAL)
        agent.values[State([0, 2])] = 5.0
        agent.values[State([2, 3])] = 0.8

        # (0, 1) from [2, 2] is not greedy while [0, 2] looks better
        self.run_episode(agent, self.greedy_episode())
        assert agent.cumulative_sums[State([2, 3])] == 1
        assert agent.values[State([2, 3])] == pytest.approx(0.0)

        # Now [0, 2] and [1, 2] tie, so every move from [2, 2] is greedy
        self.run_episode(
            agent,
            [
                TimeStep(State([3, 3]), Action(0, 1), 0.0, 0.5),
                TimeStep(State([2, 2]), Action(0, 2), 0.0, 0.25),
            ],
        )
        assert agent.values[State([0, 2])] == pytest.approx(1.0)
        assert agent.cumulative_sums[State([2, 3])] == 2
        assert agent.values[State([2, 3])] == pytest.approx(0.5)
