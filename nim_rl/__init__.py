"""
Tabular reinforcement learning for normal-play Nim.

Importing the package registers the `nim_rl/Nim-v0` gymnasium environment.
"""

from .config_exp import AgentConfig, AgentMethod, ExperimentConfig, create_agent
from .config_manager import ConfigManager
from .env import NimEnv
from .experiment import NimExperiment
from .game import Game, MatchResult
from .state import Action, State, read_action, read_state

__all__ = [
    "Action",
    "State",
    "read_action",
    "read_state",
    "Game",
    "MatchResult",
    "NimEnv",
    "AgentConfig",
    "AgentMethod",
    "ExperimentConfig",
    "create_agent",
    "ConfigManager",
    "NimExperiment",
]
