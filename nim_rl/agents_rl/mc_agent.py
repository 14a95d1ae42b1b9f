from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from ..state import Action, State
from .base import (
    DEFAULT_EPSILON,
    DEFAULT_EPSILON_DECAY_FACTOR,
    DEFAULT_GAMMA,
    DEFAULT_MIN_EPSILON,
    DecayCadence,
    EpsilonGreedyPolicy,
    RLAgent,
    TimeStep,
    checked_child,
    sample,
)

if TYPE_CHECKING:
    from ..game import Game


class ImportanceSampling(Enum):
    """Weighting of ratio-corrected returns in off-policy Monte Carlo."""

    WEIGHTED = "weighted"
    NORMAL = "normal"


class MonteCarloAgent(RLAgent):
    """
    Monte Carlo agent with a greedy behavior policy.

    Monte Carlo methods wait until the end of an episode to update values,
    using the actual observed returns rather than bootstrapped estimates.

    Key characteristics:
    - Updates at episode end (not step-by-step)
    - Uses actual returns (no bootstrapping)
    - First-visit incremental averaging: V(s) <- V(s) + [G - V(s)] / N(s)
    """

    def __init__(self, gamma: float = DEFAULT_GAMMA, seed: Optional[int] = None):
        """
        :param gamma: Discount factor for future rewards
        :param seed: Seed of the agent's private random generator
        """
        super().__init__(seed)
        self.gamma = gamma
        self.trajectory: List[TimeStep] = []
        self.cumulative_sums: Dict[State, float] = {}

    def reset(self) -> None:
        super().reset()
        self.trajectory = []

    def policy_impl(self, legal_actions: List[Action], greedy_actions: List[Action]) -> Action:
        return sample(self.rng, greedy_actions)

    def select_action(self, state: State, is_evaluation: bool) -> Action:
        return self.policy(state, is_evaluation)

    def step(self, game: "Game", is_evaluation: bool = False) -> Action:
        """
        Chooses an action and, in training mode, records it in the trajectory.

        :param game: Game whose `state` is the position to move from
        :param is_evaluation: If True, act greedily and record nothing
        :return: Selected action
        """
        state = game.state.copy()
        action = self.select_action(state, is_evaluation)
        if not is_evaluation:
            self.trajectory.append(
                TimeStep(state, action, 0.0, self.behavior_probability(action))
            )
            self.decay_exploration(DecayCadence.STEP)
        self.current_state = checked_child(state, action)
        return action

    def update(self, prior_state: Optional[State], new_state: State, reward: float) -> None:
        """
        Credits `reward` to the last recorded step and learns once the episode is over.

        :param prior_state: Afterstate of the agent's last move
        :param new_state: Observed state (terminal at the end of an episode)
        :param reward: Reward following the last move
        """
        super().update(prior_state, new_state, reward)
        if not self.trajectory:
            return
        last = self.trajectory[-1]
        self.trajectory[-1] = last._replace(reward=last.reward + reward)
        if new_state.is_terminal():
            self.update_values()
            self.trajectory = []

    def calculate_returns(self, trajectory: List[TimeStep]) -> List[Tuple[State, Action, float]]:
        """
        Calculate discounted returns for each step of the trajectory.

        Uses backwards iteration: G_t = r_{t+1} + γ·G_{t+1}

        :param trajectory: List of time steps
        :return: List of (state, action, return) tuples
        """
        returns = []
        G = 0.0

        for step in reversed(trajectory):
            G = step.reward + self.gamma * G
            returns.append((step.state, step.action, G))

        returns.reverse()
        return returns

    def update_values(self) -> None:
        """First-visit update of the afterstates of the finished episode."""
        visited = set()

        for state, action, G in self.calculate_returns(self.trajectory):
            afterstate = state.child(action)
            if afterstate in visited:
                continue
            visited.add(afterstate)
            self.cumulative_sums[afterstate] = self.cumulative_sums.get(afterstate, 0.0) + 1.0
            current_value = self.values[afterstate]
            self.values[afterstate] = current_value + (G - current_value) / self.cumulative_sums[afterstate]


class ESMonteCarloAgent(MonteCarloAgent):
    """
    Monte Carlo with exploring starts.

    The first action of every training episode is drawn uniformly at random;
    the rest of the episode follows the greedy policy.
    """

    def select_action(self, state: State, is_evaluation: bool) -> Action:
        if is_evaluation or self.trajectory:
            return self.policy(state, is_evaluation)
        self.legal_actions = state.legal_actions()
        self.greedy_actions = list(self.legal_actions)
        return sample(self.rng, self.legal_actions)


class OnPolicyMonteCarloAgent(MonteCarloAgent):
    """On-policy Monte Carlo: epsilon-greedy behavior and target policy."""

    def __init__(
        self,
        gamma: float = DEFAULT_GAMMA,
        epsilon: float = DEFAULT_EPSILON,
        epsilon_decay_factor: float = DEFAULT_EPSILON_DECAY_FACTOR,
        min_epsilon: float = DEFAULT_MIN_EPSILON,
        decay_cadence: DecayCadence = DecayCadence.EPISODE,
        seed: Optional[int] = None,
    ):
        super().__init__(gamma, seed)
        self.exploration = EpsilonGreedyPolicy(
            epsilon, epsilon_decay_factor, min_epsilon, decay_cadence, self._spawn_seed()
        )

    def policy_impl(self, legal_actions: List[Action], greedy_actions: List[Action]) -> Action:
        return self.exploration.select_action(legal_actions, greedy_actions)


class OffPolicyMonteCarloAgent(OnPolicyMonteCarloAgent):
    """
    Off-policy Monte Carlo.

    Behaves epsilon-greedily but learns the values of the greedy policy,
    correcting returns with importance-sampling ratios. WEIGHTED sampling
    (the default) has lower variance; NORMAL sampling is unbiased.
    """

    def __init__(
        self,
        gamma: float = DEFAULT_GAMMA,
        importance_sampling: ImportanceSampling = ImportanceSampling.WEIGHTED,
        epsilon: float = DEFAULT_EPSILON,
        epsilon_decay_factor: float = DEFAULT_EPSILON_DECAY_FACTOR,
        min_epsilon: float = DEFAULT_MIN_EPSILON,
        decay_cadence: DecayCadence = DecayCadence.EPISODE,
        seed: Optional[int] = None,
    ):
        super().__init__(gamma, epsilon, epsilon_decay_factor, min_epsilon, decay_cadence, seed)
        self.importance_sampling = importance_sampling

    def update_values(self) -> None:
        """
        Backward pass over the episode with importance weight W.

        Weighted:  C(s) += W;  V(s) += W / C(s) · [G - V(s)]
        Normal:    N(s) += 1;  V(s) += [W·G - V(s)] / N(s)

        The weighted pass stops at the first action the greedy target policy
        would not take. The ordinary pass keeps counting the earlier visits
        with a zero weight.
        """
        G = 0.0
        W = 1.0

        for step in reversed(self.trajectory):
            G = self.gamma * G + step.reward
            afterstate = step.state.child(step.action)
            current_value = self.values[afterstate]

            if self.importance_sampling == ImportanceSampling.WEIGHTED:
                self.cumulative_sums[afterstate] = self.cumulative_sums.get(afterstate, 0.0) + W
                self.values[afterstate] = current_value + W / self.cumulative_sums[afterstate] * (
                    G - current_value
                )
            else:
                self.cumulative_sums[afterstate] = self.cumulative_sums.get(afterstate, 0.0) + 1.0
                self.values[afterstate] = current_value + (W * G - current_value) / self.cumulative_sums[
                    afterstate
                ]

            target_prob = self.target_probability(step.state, step.action)
            if target_prob == 0.0 and self.importance_sampling == ImportanceSampling.WEIGHTED:
                break
            W *= target_prob / step.behavior_prob
