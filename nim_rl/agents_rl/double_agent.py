from abc import abstractmethod
from typing import Dict, Optional, Sequence

from ..state import State
from .base import (
    DEFAULT_ALPHA,
    DEFAULT_EPSILON,
    DEFAULT_EPSILON_DECAY_FACTOR,
    DEFAULT_GAMMA,
    DEFAULT_MIN_EPSILON,
    DecayCadence,
    ValueTable,
    sample,
)
from .td_agent import TDAgent


class DoubleLearningAgent(TDAgent):
    """
    Base class for double-estimator TD agents.

    Two value tables are learned side by side. Actions are selected greedily
    with respect to their sum; each update flips a fair coin to choose the
    table to update, and the other table evaluates the bootstrap action.
    Decoupling selection from evaluation removes the maximization bias of
    single-estimator learning.
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        gamma: float = DEFAULT_GAMMA,
        epsilon: float = DEFAULT_EPSILON,
        epsilon_decay_factor: float = DEFAULT_EPSILON_DECAY_FACTOR,
        min_epsilon: float = DEFAULT_MIN_EPSILON,
        decay_cadence: DecayCadence = DecayCadence.EPISODE,
        seed: Optional[int] = None,
    ):
        super().__init__(alpha, gamma, epsilon, epsilon_decay_factor, min_epsilon, decay_cadence, seed)
        self.values_2 = ValueTable()
        self.update_values = self.values
        self.evaluate_values = self.values_2

    def _selection_value(self, state: State) -> float:
        return self.values[state] + self.values_2[state]

    def get_values(self) -> ValueTable:
        """Element-wise average of both tables."""
        keys = set(self.values) | set(self.values_2)
        return ValueTable(
            {key: (self.values[key] + self.values_2[key]) / 2.0 for key in keys}
        )

    def set_values(self, values: Dict[State, float]) -> None:
        self.values = ValueTable(values)
        self.values_2 = ValueTable(values)

    def initialize(self, states: Sequence[State]) -> None:
        super().initialize(states)
        for state in states:
            self.values_2.setdefault(state, 0.0)

    def learn(self, prior_state: State, new_state: State, reward: float) -> None:
        if self.rng.random() < 0.5:
            self.update_values, self.evaluate_values = self.values, self.values_2
        else:
            self.update_values, self.evaluate_values = self.values_2, self.values

        td_target = reward
        if not new_state.is_terminal():
            td_target += self.gamma * self.bootstrap(new_state)
        current_value = self.update_values[prior_state]
        self.update_values[prior_state] = current_value + self.alpha * (td_target - current_value)

    def bootstrap(self, state: State) -> float:
        return self.double_bootstrap(state, self.update_values, self.evaluate_values)

    @abstractmethod
    def double_bootstrap(
        self,
        state: State,
        update_values: ValueTable,
        evaluate_values: ValueTable,
    ) -> float:
        """
        Bootstrap term of the updated table.

        :param state: Non-terminal state the next move is taken from
        :param update_values: Table being updated, used to pick actions
        :param evaluate_values: Other table, used to value the picked actions
        """


class DoubleQLearningAgent(DoubleLearningAgent):
    """Double Q-Learning: argmax by the updated table, value by the other one."""

    def double_bootstrap(self, state, update_values, evaluate_values) -> float:
        greedy_actions = self.find_greedy_actions(state, state.legal_actions(), update_values)
        best_action = sample(self.rng, greedy_actions)
        return evaluate_values[state.child(best_action)]


class DoubleSarsaAgent(DoubleLearningAgent):
    """Double SARSA: the chosen next afterstate valued by the other table."""

    def double_bootstrap(self, state, update_values, evaluate_values) -> float:
        return evaluate_values[self.next_afterstate]


class DoubleExpectedSarsaAgent(DoubleLearningAgent):
    """Double Expected SARSA: greedy set from the updated table, values from the other one."""

    def double_bootstrap(self, state, update_values, evaluate_values) -> float:
        return self.expected_value(state, evaluate_values, update_values)
