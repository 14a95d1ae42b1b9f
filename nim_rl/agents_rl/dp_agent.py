import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..state import Action, State
from .base import DEFAULT_GAMMA, DEFAULT_THRESHOLD, WIN_REWARD, RLAgent, sample

logger = logging.getLogger(__name__)

StateAction = Tuple[State, Action]
StateProb = Tuple[State, float]


class DPAgent(RLAgent):
    """
    Base class for dynamic-programming agents.

    DP agents do not learn from play: `initialize` receives the full state
    space, builds the transition model and solves it. Values are negamax
    afterstate values: `V(s)` is the return of the player who just moved
    into `s`, so a terminal afterstate is worth a win and any other afterstate
    is worth minus the discounted value of the opponent's best reply.

    Transitions are addressed by the pile order of the states passed to
    `initialize`.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        gamma: float = DEFAULT_GAMMA,
        seed: Optional[int] = None,
    ):
        """
        :param threshold: Sweeps stop once the largest value change is below it
        :param gamma: Discount factor
        :param seed: Seed of the generator breaking ties between greedy actions
        """
        super().__init__(seed)
        self.threshold = threshold
        self.gamma = gamma
        self.transitions: Dict[StateAction, List[StateProb]] = {}
        self.n_sweeps = 0

    def get_transitions(self) -> Dict[StateAction, List[StateProb]]:
        return dict(self.transitions)

    def set_transitions(self, transitions: Dict[StateAction, List[StateProb]]) -> None:
        self.transitions = dict(transitions)

    def initialize(self, states: Sequence[State]) -> None:
        """Adds missing zero values and deterministic transitions for every state."""
        super().initialize(states)
        for state in states:
            for action in state.legal_actions():
                self.transitions.setdefault((state, action), [(state.child(action), 1.0)])

    def policy_impl(self, legal_actions: List[Action], greedy_actions: List[Action]) -> Action:
        return sample(self.rng, greedy_actions)

    def lookahead(self, state: State, action: Action) -> float:
        """Expected afterstate value reached by playing `action` in `state`."""
        return sum(prob * self.values[child] for child, prob in self.transitions[(state, action)])

    def lookahead_values(self, state: State) -> Tuple[List[Action], np.ndarray]:
        actions = state.legal_actions()
        return actions, np.array([self.lookahead(state, action) for action in actions])

    def reward(self, state: State) -> float:
        return WIN_REWARD if state.is_terminal() else 0.0


class PolicyIterationAgent(DPAgent):
    """
    Policy iteration.

    Alternates full policy evaluation with greedy policy improvement until
    no state's set of greedy actions changes.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        gamma: float = DEFAULT_GAMMA,
        seed: Optional[int] = None,
    ):
        super().__init__(threshold, gamma, seed)
        self.policy_table: Dict[State, List[Action]] = {}
        self.n_iterations = 0

    def initialize(self, states: Sequence[State]) -> None:
        super().initialize(states)
        self.policy_iteration(states)

    def policy_iteration(self, states: Sequence[State]) -> None:
        non_terminal = [state for state in states if not state.is_terminal()]
        self.policy_table = {state: state.legal_actions() for state in non_terminal}
        self.n_iterations = 0

        policy_stable = False
        while not policy_stable:
            self.n_iterations += 1
            self.evaluate_policy(states)
            policy_stable = self.improve_policy(non_terminal)

        logger.debug(
            "Policy iteration converged after %d iterations (%d evaluation sweeps)",
            self.n_iterations,
            self.n_sweeps,
        )

    def evaluate_policy(self, states: Sequence[State]) -> None:
        """Sweeps the states until the values of the current policy stop changing."""
        delta = np.inf
        while delta >= self.threshold:
            delta = 0.0
            self.n_sweeps += 1
            for state in states:
                value = self.reward(state)
                if not state.is_terminal():
                    actions = self.policy_table[state]
                    expected = np.mean([self.lookahead(state, action) for action in actions])
                    value -= self.gamma * expected
                delta = max(delta, abs(value - self.values[state]))
                self.values[state] = value

    def improve_policy(self, states: Sequence[State]) -> bool:
        """
        Makes the policy greedy with respect to the current values.

        :return: True if no state's greedy actions changed
        """
        policy_stable = True
        for state in states:
            actions, values = self.lookahead_values(state)
            greedy = [
                action
                for action, is_max in zip(actions, np.isclose(values, values.max()))
                if is_max
            ]
            if set(greedy) != set(self.policy_table[state]):
                policy_stable = False
            self.policy_table[state] = greedy
        return policy_stable


class ValueIterationAgent(DPAgent):
    """Value iteration: each sweep backs every state up with its best action."""

    def initialize(self, states: Sequence[State]) -> None:
        super().initialize(states)
        self.value_iteration(states)

    def value_iteration(self, states: Sequence[State]) -> None:
        delta = np.inf
        while delta >= self.threshold:
            delta = 0.0
            self.n_sweeps += 1
            for state in states:
                value = self.reward(state)
                if not state.is_terminal():
                    _, values = self.lookahead_values(state)
                    value -= self.gamma * values.max()
                delta = max(delta, abs(value - self.values[state]))
                self.values[state] = value

        logger.debug("Value iteration converged after %d sweeps", self.n_sweeps)
