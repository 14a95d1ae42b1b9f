"""
Gymnasium environment for Nim.

The learner always moves first; after each of its legal moves the opponent
agent replies greedily. Rewards follow the normal-play convention: taking the
last object wins (+1), letting the opponent take it loses (-1).
"""

from typing import Optional, Sequence

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from .agents_rl.base import LOSE_REWARD, WIN_REWARD, Agent
from .agents_rl.basic import OptimalAgent
from .game import Game
from .state import Action, State


class NimEnv(gym.Env):
    metadata = {"render_modes": ["human", "ansi"], "render_fps": 4}

    def __init__(
        self,
        piles: Sequence[int] = (3, 4, 5),
        opponent: Optional[Agent] = None,
        render_mode: Optional[str] = None,
    ):
        """
        :param piles: Initial pile sizes
        :param opponent: Agent answering every move (perfect player by default)
        :param render_mode: None, "human" (print) or "ansi" (return text)
        """
        super().__init__()
        if not piles:
            raise ValueError("At least one pile is required")
        if render_mode is not None and render_mode not in self.metadata["render_modes"]:
            raise ValueError(f"Render mode '{render_mode}' not supported")

        self.initial_state = State(piles)
        self.opponent = opponent if opponent is not None else OptimalAgent()
        self.game = Game(self.initial_state)
        self.game.set_second_player(self.opponent)
        self.terminated = False

        self.observation_space = spaces.MultiDiscrete(
            np.array(self.initial_state.piles, dtype=np.int64) + 1
        )
        self.action_space = spaces.MultiDiscrete(
            [len(self.initial_state), max(self.initial_state.piles) + 1]
        )
        self.render_mode = render_mode

    @property
    def state(self) -> State:
        return self.game.state

    def _get_obs(self) -> np.ndarray:
        return np.array(self.game.state.piles, dtype=np.int64)

    def _get_info(self) -> dict:
        return {"nim_sum": self.game.state.nim_sum()}

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        if seed is not None:
            self.opponent.rng = np.random.default_rng(seed)
        self.game.state = self.initial_state.copy()
        self.opponent.reset()
        self.terminated = False
        return self._get_obs(), self._get_info()

    def step(self, action):
        if self.terminated:
            raise RuntimeError("Episode has ended. Call reset() to start a new episode.")

        move = Action(int(action[0]), int(action[1]))
        if not move.is_valid(self.game.state):
            self.terminated = True
            info = self._get_info()
            info["message"] = "Invalid move"
            return self._get_obs(), LOSE_REWARD, True, False, info

        self.game.state.apply_action(move)
        if self.game.state.is_terminal():
            self.terminated = True
            return self._get_obs(), WIN_REWARD, True, False, self._get_info()

        reply = self.opponent.step(self.game, is_evaluation=True)
        self.game.state.apply_action(reply)
        info = self._get_info()
        info["opponent_action"] = (reply.pile_id, reply.num_objects)
        if self.game.state.is_terminal():
            self.terminated = True
            return self._get_obs(), LOSE_REWARD, True, False, info

        return self._get_obs(), 0.0, False, False, info

    def render(self):
        if self.render_mode == "ansi":
            return str(self.game.state)
        if self.render_mode == "human":
            print(f"Piles: {self.game.state}")
        return None

    def close(self):
        self.opponent.detach()


gym.register(
    id="nim_rl/Nim-v0",
    entry_point="nim_rl.env:NimEnv",
)
