"""
RL Agents Package

This package contains the Nim players and the tabular reinforcement learning algorithms.
Every learning agent keeps a table of afterstate values: the value of taking action a
in state s is the value V(s + a) of the state the move leads to.
- Dynamic programming (full model, no play):
    Policy iteration and value iteration over the whole state space of a game.
- Monte Carlo (episode-based):
    Updates V(s) towards the actual return G of the episode; on-policy, off-policy with
    importance sampling, and exploring starts.
- Temporal difference (one-step):
    Q-Learning:      V(s) := V(s) + α[r + γ·max_a V(s' + a) - V(s)]
    SARSA:           V(s) := V(s) + α[r + γ·V(s' + a') - V(s)]
    Expected SARSA:  V(s) := V(s) + α[r + γ·Σ_a π(a|s')·V(s' + a) - V(s)]
- Double estimators:
    Two tables, a fair coin picks the one to update, the other evaluates the bootstrap.
- n-step bootstrapping:
    n-step SARSA, n-step Expected SARSA, their off-policy versions and n-step tree backup.

All agents inherit from Agent and share the step/update contract driven by a Game.
"""

from .base import (
    Agent,
    DecayCadence,
    EpsilonGreedyPolicy,
    RLAgent,
    TimeStep,
    ValueTable,
    format_trajectory,
    format_values,
)
from .basic import HumanAgent, OptimalAgent, RandomAgent
from .double_agent import (
    DoubleExpectedSarsaAgent,
    DoubleLearningAgent,
    DoubleQLearningAgent,
    DoubleSarsaAgent,
)
from .dp_agent import DPAgent, PolicyIterationAgent, ValueIterationAgent
from .mc_agent import (
    ESMonteCarloAgent,
    ImportanceSampling,
    MonteCarloAgent,
    OffPolicyMonteCarloAgent,
    OnPolicyMonteCarloAgent,
)
from .nstep_agent import (
    NStepBootstrappingAgent,
    NStepExpectedSarsaAgent,
    NStepSarsaAgent,
    NStepTreeBackupAgent,
    OffPolicyNStepExpectedSarsaAgent,
    OffPolicyNStepSarsaAgent,
)
from .td_agent import ExpectedSarsaAgent, QLearningAgent, SarsaAgent, TDAgent

__all__ = [
    "Agent",
    "RLAgent",
    "DecayCadence",
    "EpsilonGreedyPolicy",
    "TimeStep",
    "ValueTable",
    "format_trajectory",
    "format_values",
    "HumanAgent",
    "OptimalAgent",
    "RandomAgent",
    "DPAgent",
    "PolicyIterationAgent",
    "ValueIterationAgent",
    "ImportanceSampling",
    "MonteCarloAgent",
    "ESMonteCarloAgent",
    "OnPolicyMonteCarloAgent",
    "OffPolicyMonteCarloAgent",
    "TDAgent",
    "QLearningAgent",
    "SarsaAgent",
    "ExpectedSarsaAgent",
    "DoubleLearningAgent",
    "DoubleQLearningAgent",
    "DoubleSarsaAgent",
    "DoubleExpectedSarsaAgent",
    "NStepBootstrappingAgent",
    "NStepSarsaAgent",
    "NStepExpectedSarsaAgent",
    "OffPolicyNStepSarsaAgent",
    "OffPolicyNStepExpectedSarsaAgent",
    "NStepTreeBackupAgent",
]
