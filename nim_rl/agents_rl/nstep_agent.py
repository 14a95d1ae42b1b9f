import math
from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from ..state import Action, State
from .base import (
    DEFAULT_ALPHA,
    DEFAULT_EPSILON,
    DEFAULT_EPSILON_DECAY_FACTOR,
    DEFAULT_GAMMA,
    DEFAULT_MIN_EPSILON,
    DEFAULT_N,
    DecayCadence,
    TimeStep,
    checked_child,
)
from .td_agent import TDAgent

if TYPE_CHECKING:
    from ..game import Game


class NStepBootstrappingAgent(TDAgent):
    """
    Base class for n-step bootstrapping agents.

    Time t counts the agent's own moves. Entry t of the trajectory holds the
    state S_t, the action A_t and the reward R_{t+1} that followed it. Once
    the agent has moved at time t, the afterstate of time `update_time = t - n`
    is updated. The terminal time T is unknown (infinite) until the episode
    ends; the remaining afterstates are then flushed up to T - 1.
    """

    def __init__(
        self,
        alpha: float = DEFAULT_ALPHA,
        gamma: float = DEFAULT_GAMMA,
        n: int = DEFAULT_N,
        epsilon: float = DEFAULT_EPSILON,
        epsilon_decay_factor: float = DEFAULT_EPSILON_DECAY_FACTOR,
        min_epsilon: float = DEFAULT_MIN_EPSILON,
        decay_cadence: DecayCadence = DecayCadence.EPISODE,
        seed: Optional[int] = None,
    ):
        """
        :param alpha: Learning rate for value updates
        :param gamma: Discount factor for future rewards
        :param n: Number of steps before bootstrapping
        :param epsilon: Initial exploration probability
        :param epsilon_decay_factor: Multiplicative decay of the exploration probability
        :param min_epsilon: Minimum exploration probability
        :param decay_cadence: Whether epsilon decays after every episode or every move
        :param seed: Seed of the agent's private random generators
        """
        if n < 1:
            raise ValueError(f"n must be at least 1, got {n}")
        super().__init__(alpha, gamma, epsilon, epsilon_decay_factor, min_epsilon, decay_cadence, seed)
        self.n = n
        self.current_time = 0
        self.terminal_time = math.inf
        self.update_time = 0
        self.trajectory: List[TimeStep] = []

    def reset(self) -> None:
        super().reset()
        self.current_time = 0
        self.terminal_time = math.inf
        self.update_time = 0
        self.trajectory = []

    def step(self, game: "Game", is_evaluation: bool = False) -> Action:
        state = game.state.copy()
        action = self.policy(state, is_evaluation)
        if not is_evaluation:
            self.trajectory.append(
                TimeStep(state, action, 0.0, self.behavior_probability(action))
            )
            self.update_time = self.current_time - self.n
            if self.update_time >= 0:
                self.update_at(self.update_time)
            self.current_time += 1
            self.decay_exploration(DecayCadence.STEP)
        self.current_state = checked_child(state, action)
        return action

    def learn(self, prior_state: State, new_state: State, reward: float) -> None:
        if not self.trajectory:
            return
        last = self.trajectory[-1]
        self.trajectory[-1] = last._replace(reward=last.reward + reward)
        if not new_state.is_terminal():
            return

        self.terminal_time = self.current_time
        self.update_time = max(self.current_time - self.n, 0)
        while self.update_time < self.terminal_time:
            self.update_at(self.update_time)
            self.update_time += 1

    def reward(self, i: int) -> float:
        """R_i, the reward that followed the action of time i - 1."""
        return self.trajectory[i - 1].reward

    def afterstate(self, t: int) -> State:
        step = self.trajectory[t]
        return step.state.child(step.action)

    def discounted_rewards(self, tau: int) -> float:
        """Sum of γ^(i-τ-1)·R_i for i from τ+1 to min(τ+n, T)."""
        horizon = int(min(tau + self.n, self.terminal_time))
        return sum(
            self.gamma ** (i - tau - 1) * self.reward(i) for i in range(tau + 1, horizon + 1)
        )

    def importance_ratio(self, start: int, stop: int) -> float:
        """Product of π(A_i|S_i) / b(A_i|S_i) for i from `start` to `stop` inclusive."""
        ratio = 1.0
        for i in range(start, stop + 1):
            step = self.trajectory[i]
            ratio *= self.target_probability(step.state, step.action) / step.behavior_prob
        return ratio

    def move_towards(self, afterstate: State, target: float, weight: float = 1.0) -> None:
        current_value = self.values[afterstate]
        self.values[afterstate] = current_value + self.alpha * weight * (target - current_value)

    def bootstrap(self, state: State) -> float:
        """Value of `state` under the greedy target policy."""
        return float(self.action_values(state, state.legal_actions()).max())

    @abstractmethod
    def update_at(self, tau: int) -> None:
        """Updates the afterstate of time `tau`."""


class NStepSarsaAgent(NStepBootstrappingAgent):
    """
    n-step SARSA.

    G = R_{τ+1} + γ·R_{τ+2} + ... + γ^(n-1)·R_{τ+n} + γ^n·V(S_{τ+n} + A_{τ+n})
    """

    def update_at(self, tau: int) -> None:
        G = self.discounted_rewards(tau)
        if tau + self.n < self.terminal_time:
            G += self.gamma**self.n * self.values[self.afterstate(tau + self.n)]
        self.move_towards(self.afterstate(tau), G)


class NStepExpectedSarsaAgent(NStepBootstrappingAgent):
    """n-step Expected SARSA: bootstraps with the epsilon-greedy expectation at S_{τ+n}."""

    def bootstrap(self, state: State) -> float:
        return self.expected_value(state, self.values)

    def update_at(self, tau: int) -> None:
        G = self.discounted_rewards(tau)
        if tau + self.n < self.terminal_time:
            state = self.trajectory[tau + self.n].state
            G += self.gamma**self.n * self.bootstrap(state)
        self.move_towards(self.afterstate(tau), G)


class OffPolicyNStepSarsaAgent(NStepBootstrappingAgent):
    """
    Off-policy n-step SARSA.

    Learns the greedy policy while following the epsilon-greedy one; the
    n-step update is weighted by the importance-sampling ratio of the actions
    taken from τ+1 to min(τ+n, T-1).
    """

    def update_at(self, tau: int) -> None:
        T = self.terminal_time
        rho = self.importance_ratio(tau + 1, int(min(tau + self.n, T - 1)))
        G = self.discounted_rewards(tau)
        if tau + self.n < T:
            G += self.gamma**self.n * self.values[self.afterstate(tau + self.n)]
        self.move_towards(self.afterstate(tau), G, rho)


class OffPolicyNStepExpectedSarsaAgent(NStepBootstrappingAgent):
    """
    Off-policy n-step Expected SARSA.

    The bootstrap is the expectation under the greedy target policy, so the
    importance-sampling ratio only covers the actions from τ+1 to
    min(τ+n-1, T-1).
    """

    def update_at(self, tau: int) -> None:
        T = self.terminal_time
        rho = self.importance_ratio(tau + 1, int(min(tau + self.n - 1, T - 1)))
        G = self.discounted_rewards(tau)
        if tau + self.n < T:
            state = self.trajectory[tau + self.n].state
            G += self.gamma**self.n * self.bootstrap(state)
        self.move_towards(self.afterstate(tau), G, rho)


class NStepTreeBackupAgent(NStepBootstrappingAgent):
    """
    n-step tree backup.

    Off-policy without importance sampling: the target is built backwards as
    a tree over every action of each visited state, weighted by the
    probabilities of the greedy target policy (uniform over tied actions).
    """

    def update_at(self, tau: int) -> None:
        T = self.terminal_time
        t = tau + self.n - 1

        if t + 1 >= T:
            G = self.reward(int(T))
        else:
            state = self.trajectory[t + 1].state
            G = self.reward(t + 1) + self.gamma * self.bootstrap(state)

        for k in range(int(min(t, T - 1)), tau, -1):
            step = self.trajectory[k]
            legal_actions = step.state.legal_actions()
            action_values = self.action_values(step.state, legal_actions)
            greedy = np.isclose(action_values, action_values.max())
            target_probs = greedy / greedy.sum()
            taken = legal_actions.index(step.action)
            others = float(np.dot(target_probs, action_values)) - target_probs[taken] * action_values[taken]
            G = self.reward(k) + self.gamma * others + self.gamma * target_probs[taken] * G

        self.move_towards(self.afterstate(tau), G)
