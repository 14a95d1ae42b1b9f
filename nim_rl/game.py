"""
Game orchestrator.

A `Game` alternates turns between two agents over a shared `State`. The
player who removes the last object wins (+1) and the other player loses (-1).
"""

import logging
import weakref
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
from tqdm import tqdm

from .agents_rl.base import LOSE_REWARD, WIN_REWARD, Agent, DecayCadence
from .state import State

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Outcome of a series of evaluation episodes."""

    first_wins: int = 0
    second_wins: int = 0

    @property
    def n_episodes(self) -> int:
        return self.first_wins + self.second_wins

    @property
    def first_win_rate(self) -> float:
        return self.first_wins / self.n_episodes if self.n_episodes else 0.0


class Game:
    """
    Two-player Nim game.

    The game references its players weakly: it never keeps an agent alive,
    and a collected agent simply leaves its seat empty.
    """

    def __init__(
        self,
        initial_state: State,
        first_player: Optional[Agent] = None,
        second_player: Optional[Agent] = None,
    ):
        """
        :param initial_state: Position every episode starts from
        :param first_player: Agent moving first
        :param second_player: Agent moving second
        """
        self.initial_state = initial_state.copy()
        self.state = initial_state.copy()
        self.all_states: List[State] = self.initial_state.get_all_states()
        self._first: Optional[weakref.ref] = None
        self._second: Optional[weakref.ref] = None

        if first_player is not None:
            self.set_first_player(first_player)
        if second_player is not None:
            self.set_second_player(second_player)

    @property
    def first_player(self) -> Optional[Agent]:
        return self._first() if self._first is not None else None

    @property
    def second_player(self) -> Optional[Agent]:
        return self._second() if self._second is not None else None

    def set_first_player(self, agent: Optional[Agent]) -> None:
        """Seats `agent` as first player, detaching the previous one."""
        previous, self._first = self.first_player, None
        self._release(previous)
        if agent is not None:
            self._first = weakref.ref(agent)
            self._attach(agent)

    def set_second_player(self, agent: Optional[Agent]) -> None:
        """Seats `agent` as second player, detaching the previous one."""
        previous, self._second = self.second_player, None
        self._release(previous)
        if agent is not None:
            self._second = weakref.ref(agent)
            self._attach(agent)

    def remove_player(self, agent: Agent) -> None:
        """Empties every seat held by `agent`."""
        if self.first_player is agent:
            self._first = None
        if self.second_player is agent:
            self._second = None
        agent._remove_game(self)

    def _attach(self, agent: Agent) -> None:
        agent._add_game(self)
        agent.initialize(self.all_states)

    def _release(self, agent: Optional[Agent]) -> None:
        if agent is None:
            return
        if agent is not self.first_player and agent is not self.second_player:
            agent._remove_game(self)

    def _players(self) -> List[Agent]:
        first, second = self.first_player, self.second_player
        if first is None or second is None:
            raise RuntimeError("Both players must be set before playing")
        return [first, second]

    def reset(self) -> None:
        """Restores the initial state and resets both players."""
        self.state = self.initial_state.copy()
        for agent in self._players():
            agent.reset()

    def run_episode(self, is_evaluation: bool = False) -> int:
        """
        Plays one episode.

        :param is_evaluation: If True, agents act greedily and do not learn
        :return: Index of the winner (0 for the first player, 1 for the second)
        """
        players = self._players()
        self.reset()
        turn = 0
        while not self.state.is_terminal():
            action = players[turn].step(self, is_evaluation)
            if not action.is_valid(self.state):
                raise RuntimeError(
                    f"{players[turn].__class__.__name__} played an illegal action: {action}"
                )
            self.state.apply_action(action)
            turn = 1 - turn

        winner = 1 - turn
        if not is_evaluation:
            final_state = self.state.copy()
            for index, agent in enumerate(players):
                reward = WIN_REWARD if index == winner else LOSE_REWARD
                agent.update(agent.current_state, final_state, reward)
        return winner

    def train(self, n_episodes: int, verbose: bool = True) -> np.ndarray:
        """
        Trains both players.

        :param n_episodes: Number of training episodes
        :param verbose: Whether to show progress bar
        :return: Array of first-player rewards (+1 win, -1 loss)
        """
        players = self._players()
        rewards = []

        iterator = (
            tqdm(range(n_episodes), desc=f"Training {players[0].__class__.__name__}")
            if verbose
            else range(n_episodes)
        )

        for episode in iterator:
            winner = self.run_episode(is_evaluation=False)
            rewards.append(WIN_REWARD if winner == 0 else LOSE_REWARD)
            for agent in players:
                agent.decay_exploration(DecayCadence.EPISODE)

            if verbose and episode > 0 and episode % 100 == 0:
                recent_avg = np.mean(rewards[-100:])
                iterator.set_postfix({"avg_reward_100": f"{recent_avg:.2f}"})

        return np.array(rewards)

    def play(self, n_episodes: int, verbose: bool = False) -> MatchResult:
        """
        Evaluates both players without exploration or learning.

        :param n_episodes: Number of evaluation episodes
        :param verbose: Whether to show progress bar
        :return: Win counts of both players
        """
        result = MatchResult()
        iterator: Iterable[int] = (
            tqdm(range(n_episodes), desc="Evaluating") if verbose else range(n_episodes)
        )
        for _ in iterator:
            if self.run_episode(is_evaluation=True) == 0:
                result.first_wins += 1
            else:
                result.second_wins += 1

        logger.info(
            "%s vs %s: %d - %d",
            self.first_player.__class__.__name__,
            self.second_player.__class__.__name__,
            result.first_wins,
            result.second_wins,
        )
        return result
