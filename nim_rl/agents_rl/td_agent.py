from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional

from ..state import Action, State
from .base import (
    DEFAULT_ALPHA,
    DEFAULT_EPSILON,
    DEFAULT_EPSILON_DECAY_FACTOR,
    DEFAULT_GAMMA,
    DEFAULT_MIN_EPSILON,
    DecayCadence,
    EpsilonGreedyPolicy,
    RLAgent,
    checked_child,
)

if TYPE_CHECKING:
    from ..game import Game


class TDAgent(RLAgent):
    """
    Base class for one-step temporal-difference agents.

    The value of the afterstate produced by the previous move is updated as
    soon as the agent observes the state it has to move from next:

    V(s) := V(s) + α[r + γ·bootstrap(s') - V(s)]

    where the bootstrap term is zero when s' is terminal.
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
        """
        :param alpha: Learning rate for value updates
        :param gamma: Discount factor for future rewards
        :param epsilon: Initial exploration probability
        :param epsilon_decay_factor: Multiplicative decay of the exploration probability
        :param min_epsilon: Minimum exploration probability
        :param decay_cadence: Whether epsilon decays after every episode or every move
        :param seed: Seed of the agent's private random generators
        """
        super().__init__(seed)
        self.alpha = alpha
        self.gamma = gamma
        self.exploration = EpsilonGreedyPolicy(
            epsilon, epsilon_decay_factor, min_epsilon, decay_cadence, self._spawn_seed()
        )
        self.next_afterstate: Optional[State] = None

    def reset(self) -> None:
        super().reset()
        self.next_afterstate = None

    def policy_impl(self, legal_actions: List[Action], greedy_actions: List[Action]) -> Action:
        return self.exploration.select_action(legal_actions, greedy_actions)

    def step(self, game: "Game", is_evaluation: bool = False) -> Action:
        """
        Chooses an action, then learns from the transition that led here.

        :param game: Game whose `state` is the position to move from
        :param is_evaluation: If True, act greedily and do not learn
        :return: Selected action
        """
        state = game.state.copy()
        action = self.policy(state, is_evaluation)
        next_afterstate = checked_child(state, action)
        if not is_evaluation:
            if self.current_state is not None:
                self.next_afterstate = next_afterstate
                self.update(self.current_state, state, 0.0)
            self.decay_exploration(DecayCadence.STEP)
        self.current_state = next_afterstate
        return action

    def update(self, prior_state: Optional[State], new_state: State, reward: float) -> None:
        super().update(prior_state, new_state, reward)
        if prior_state is not None:
            self.learn(prior_state, new_state, reward)

    def learn(self, prior_state: State, new_state: State, reward: float) -> None:
        td_target = reward
        if not new_state.is_terminal():
            td_target += self.gamma * self.bootstrap(new_state)
        current_value = self.values[prior_state]
        self.values[prior_state] = current_value + self.alpha * (td_target - current_value)

    @abstractmethod
    def bootstrap(self, state: State) -> float:
        """Estimated value of the agent's next move from the non-terminal `state`."""


class QLearningAgent(TDAgent):
    """
    Q-Learning agent.

    Q-Learning is a TD(0) off-policy algorithm that bootstraps with the
    best afterstate value reachable from s', regardless of which action
    the epsilon-greedy behavior policy will actually take.

    V(s) := V(s) + α[r + γ·max_a V(s' + a) - V(s)]
    """

    def bootstrap(self, state: State) -> float:
        return float(self.action_values(state, state.legal_actions()).max())


class SarsaAgent(TDAgent):
    """
    SARSA agent.

    SARSA is a TD(0) on-policy algorithm: it bootstraps with the value of the
    afterstate the behavior policy actually chose from s', so it learns the
    value of the policy it follows, exploration included.
    """

    def bootstrap(self, state: State) -> float:
        return self.values[self.next_afterstate]


class ExpectedSarsaAgent(TDAgent):
    """
    Expected SARSA agent.

    Bootstraps with the exact expectation of the next afterstate value under
    the current epsilon-greedy policy, removing the variance SARSA incurs
    from sampling the next action.
    """

    def bootstrap(self, state: State) -> float:
        return self.expected_value(state, self.values)
