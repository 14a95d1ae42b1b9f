"""Tests for the dynamic-programming agents."""

import pytest

from nim_rl.agents_rl import OptimalAgent, PolicyIterationAgent, ValueIterationAgent
from nim_rl.game import Game
from nim_rl.state import Action, State


def solved(agent_class, piles, **kwargs):
    agent = agent_class(seed=0, **kwargs)
    agent.initialize(State(piles).get_all_states())
    return agent


@pytest.mark.parametrize("agent_class", [PolicyIterationAgent, ValueIterationAgent])
class TestDPValues:
    """Both DP agents must find the nim-sum solution."""

    def test_values_match_nim_sum(self, agent_class):
        agent = solved(agent_class, [3, 4, 5])
        for state in State([3, 4, 5]).get_all_states():
            expected = 1.0 if state.nim_sum() == 0 else -1.0
            assert agent.values[state] == pytest.approx(expected, abs=1e-3)

    def test_greedy_actions_are_optimal(self, agent_class):
        agent = solved(agent_class, [3, 4, 5])
        assert agent.optimal_actions_ratio(State([3, 4, 5]).get_all_states()) == 1.0

    def test_terminal_is_a_win(self, agent_class):
        agent = solved(agent_class, [2, 2])
        assert agent.values[State([0, 0])] == pytest.approx(1.0)

    def test_beats_optimal_from_winning_seat(self, agent_class):
        agent = agent_class(seed=0)
        opponent = OptimalAgent(seed=1)
        game = Game(State([3, 4, 5]), agent, opponent)
        assert game.play(30).first_wins == 30

        game = Game(State([1, 2, 3]), opponent, agent)
        assert game.play(30).second_wins == 30

    def test_discounting_prefers_quick_wins(self, agent_class):
        agent = solved(agent_class, [3], gamma=0.9)
        # Taking the whole pile wins at once; any other move loses against a perfect reply.
        assert agent.find_greedy_actions(State([3]), State([3]).legal_actions()) == [Action(0, 3)]


class TestAgreement:
    def test_policy_and_value_iteration_agree(self):
        states = State([2, 3, 4]).get_all_states()
        pi_agent = solved(PolicyIterationAgent, [2, 3, 4])
        vi_agent = solved(ValueIterationAgent, [2, 3, 4])
        for state in states:
            assert pi_agent.values[state] == pytest.approx(vi_agent.values[state], abs=1e-3)
            if not state.is_terminal():
                actions = state.legal_actions()
                assert set(pi_agent.find_greedy_actions(state, actions)) == set(
                    vi_agent.find_greedy_actions(state, actions)
                )


class TestTransitions:
    def test_deterministic_transitions(self):
        agent = solved(ValueIterationAgent, [1, 2])
        transitions = agent.get_transitions()
        assert transitions[(State([1, 2]), Action(1, 2))] == [(State([1, 0]), 1.0)]
        assert all(
            sum(prob for _, prob in successors) == pytest.approx(1.0)
            for successors in transitions.values()
        )

    def test_set_transitions_stores_a_copy(self):
        agent = ValueIterationAgent()
        table = {(State([1]), Action(0, 1)): [(State([0]), 1.0)]}
        agent.set_transitions(table)
        table.clear()
        assert len(agent.get_transitions()) == 1

    def test_sweeps_and_iterations_are_counted(self):
        vi_agent = solved(ValueIterationAgent, [2, 2])
        pi_agent = solved(PolicyIterationAgent, [2, 2])
        assert vi_agent.n_sweeps > 0
        assert pi_agent.n_iterations >= 1
        assert pi_agent.n_sweeps >= pi_agent.n_iterations

    def test_policy_table_holds_greedy_actions(self):
        agent = solved(PolicyIterationAgent, [1, 2, 3])
        for state, actions in agent.policy_table.items():
            assert all(state.child(action).nim_sum() == 0 for action in actions) or state.nim_sum() == 0
