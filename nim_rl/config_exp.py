import inspect
import json
from copy import deepcopy
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .agents_rl import (
    DecayCadence,
    DoubleExpectedSarsaAgent,
    DoubleQLearningAgent,
    DoubleSarsaAgent,
    ESMonteCarloAgent,
    ExpectedSarsaAgent,
    HumanAgent,
    ImportanceSampling,
    MonteCarloAgent,
    NStepExpectedSarsaAgent,
    NStepSarsaAgent,
    NStepTreeBackupAgent,
    OffPolicyMonteCarloAgent,
    OffPolicyNStepExpectedSarsaAgent,
    OffPolicyNStepSarsaAgent,
    OnPolicyMonteCarloAgent,
    OptimalAgent,
    PolicyIterationAgent,
    QLearningAgent,
    RandomAgent,
    SarsaAgent,
    ValueIterationAgent,
)
from .agents_rl.base import (
    DEFAULT_ALPHA,
    DEFAULT_EPSILON,
    DEFAULT_EPSILON_DECAY_FACTOR,
    DEFAULT_GAMMA,
    DEFAULT_MIN_EPSILON,
    DEFAULT_N,
    DEFAULT_THRESHOLD,
    Agent,
)


class AgentMethod(Enum):
    """Nim players supported in this project."""

    RANDOM = "random"
    OPTIMAL = "optimal"
    HUMAN = "human"
    POLICY_ITERATION = "policy_iteration"
    VALUE_ITERATION = "value_iteration"
    MONTE_CARLO = "monte_carlo"
    ES_MONTE_CARLO = "es_monte_carlo"
    ON_POLICY_MONTE_CARLO = "on_policy_monte_carlo"
    OFF_POLICY_MONTE_CARLO = "off_policy_monte_carlo"
    Q_LEARNING = "q_learning"
    SARSA = "sarsa"
    EXPECTED_SARSA = "expected_sarsa"
    DOUBLE_Q_LEARNING = "double_q_learning"
    DOUBLE_SARSA = "double_sarsa"
    DOUBLE_EXPECTED_SARSA = "double_expected_sarsa"
    N_STEP_SARSA = "n_step_sarsa"
    N_STEP_EXPECTED_SARSA = "n_step_expected_sarsa"
    OFF_POLICY_N_STEP_SARSA = "off_policy_n_step_sarsa"
    OFF_POLICY_N_STEP_EXPECTED_SARSA = "off_policy_n_step_expected_sarsa"
    N_STEP_TREE_BACKUP = "n_step_tree_backup"


# Mapping of enums to agent classes
AGENT_CLASSES = {
    AgentMethod.RANDOM: RandomAgent,
    AgentMethod.OPTIMAL: OptimalAgent,
    AgentMethod.HUMAN: HumanAgent,
    AgentMethod.POLICY_ITERATION: PolicyIterationAgent,
    AgentMethod.VALUE_ITERATION: ValueIterationAgent,
    AgentMethod.MONTE_CARLO: MonteCarloAgent,
    AgentMethod.ES_MONTE_CARLO: ESMonteCarloAgent,
    AgentMethod.ON_POLICY_MONTE_CARLO: OnPolicyMonteCarloAgent,
    AgentMethod.OFF_POLICY_MONTE_CARLO: OffPolicyMonteCarloAgent,
    AgentMethod.Q_LEARNING: QLearningAgent,
    AgentMethod.SARSA: SarsaAgent,
    AgentMethod.EXPECTED_SARSA: ExpectedSarsaAgent,
    AgentMethod.DOUBLE_Q_LEARNING: DoubleQLearningAgent,
    AgentMethod.DOUBLE_SARSA: DoubleSarsaAgent,
    AgentMethod.DOUBLE_EXPECTED_SARSA: DoubleExpectedSarsaAgent,
    AgentMethod.N_STEP_SARSA: NStepSarsaAgent,
    AgentMethod.N_STEP_EXPECTED_SARSA: NStepExpectedSarsaAgent,
    AgentMethod.OFF_POLICY_N_STEP_SARSA: OffPolicyNStepSarsaAgent,
    AgentMethod.OFF_POLICY_N_STEP_EXPECTED_SARSA: OffPolicyNStepExpectedSarsaAgent,
    AgentMethod.N_STEP_TREE_BACKUP: NStepTreeBackupAgent,
}


def _parse_method(name: str | AgentMethod) -> AgentMethod:
    if isinstance(name, AgentMethod):
        return name
    try:
        return AgentMethod(name)
    except ValueError:
        valid_methods = sorted(method.value for method in AgentMethod)
        raise ValueError(
            f"Unsupported algorithm '{name}'. Supported values are: {valid_methods}"
        ) from None


@dataclass
class AgentConfig:
    """Configuration of one Nim player. Parameters an agent does not take are ignored."""

    method: AgentMethod = AgentMethod.Q_LEARNING
    alpha: float = DEFAULT_ALPHA
    gamma: float = DEFAULT_GAMMA
    epsilon: float = DEFAULT_EPSILON
    epsilon_decay_factor: float = DEFAULT_EPSILON_DECAY_FACTOR
    min_epsilon: float = DEFAULT_MIN_EPSILON
    decay_cadence: DecayCadence = DecayCadence.EPISODE
    n: int = DEFAULT_N  # For n-step agents
    threshold: float = DEFAULT_THRESHOLD  # For DP agents
    importance_sampling: ImportanceSampling = ImportanceSampling.WEIGHTED  # For off-policy Monte Carlo
    seed: Optional[int] = None

    def __post_init__(self):
        """Accepts plain values for the enum fields."""
        self.method = _parse_method(self.method)
        self.decay_cadence = DecayCadence(self.decay_cadence)
        self.importance_sampling = ImportanceSampling(self.importance_sampling)

    def to_dict(self) -> Dict[str, Any]:
        """Converts the agent configuration to a dictionary."""
        config_dict = asdict(self)
        config_dict["method"] = self.method.value
        config_dict["decay_cadence"] = self.decay_cadence.value
        config_dict["importance_sampling"] = self.importance_sampling.value
        return config_dict

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AgentConfig":
        """Creates an instance of the agent configuration from a dictionary."""
        return cls(**deepcopy(config_dict))

    def get_params(self) -> Dict[str, Any]:
        """Returns the constructor parameters accepted by the configured agent class."""
        agent_class = AGENT_CLASSES[self.method]
        accepted = inspect.signature(agent_class.__init__).parameters
        params = {
            "alpha": self.alpha,
            "gamma": self.gamma,
            "epsilon": self.epsilon,
            "epsilon_decay_factor": self.epsilon_decay_factor,
            "min_epsilon": self.min_epsilon,
            "decay_cadence": self.decay_cadence,
            "n": self.n,
            "threshold": self.threshold,
            "importance_sampling": self.importance_sampling,
            "seed": self.seed,
        }
        return {name: value for name, value in params.items() if name in accepted}


def create_agent(config: AgentConfig) -> Agent:
    """
    Builds the agent described by a configuration.

    :param config: Agent configuration
    :return: New agent instance
    """
    agent_class = AGENT_CLASSES[config.method]
    return agent_class(**config.get_params())


@dataclass
class ExperimentConfig:
    """Full configuration for a Nim experiment: the game, both players and the evaluation."""

    piles: List[int] = field(default_factory=lambda: [3, 4, 5])
    first_agent: AgentConfig = field(default_factory=AgentConfig)
    second_agent: AgentConfig = field(
        default_factory=lambda: AgentConfig(method=AgentMethod.RANDOM)
    )
    evaluation_opponent: AgentConfig = field(
        default_factory=lambda: AgentConfig(method=AgentMethod.OPTIMAL)
    )
    n_training_episodes: int = 10_000
    n_eval_episodes: int = 1_000
    n_demo_episodes: int = 3
    log_window: int = 100
    experiments_dir: Path = Path("results")

    def to_dict(self) -> Dict[str, Any]:
        """Converts the full configuration to a dictionary."""
        return {
            "piles": list(self.piles),
            "first_agent": self.first_agent.to_dict(),
            "second_agent": self.second_agent.to_dict(),
            "evaluation_opponent": self.evaluation_opponent.to_dict(),
            "n_training_episodes": self.n_training_episodes,
            "n_eval_episodes": self.n_eval_episodes,
            "n_demo_episodes": self.n_demo_episodes,
            "log_window": self.log_window,
            "experiments_dir": str(self.experiments_dir),
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ExperimentConfig":
        """
        Creates an instance from a dictionary.

        :param config_dict: A dictionary containing the configuration parameters. It should have the same structure as the one produced by `to_dict()`.
        :return: An instance of `ExperimentConfig` with the parameters set according to the provided dictionary.
        """
        config_dict = deepcopy(config_dict)
        for key in ("first_agent", "second_agent", "evaluation_opponent"):
            if key in config_dict:
                agent_config = config_dict[key]
                if not isinstance(agent_config, dict):
                    raise ValueError(f"'{key}' configuration must be a dictionary")
                config_dict[key] = AgentConfig.from_dict(agent_config)
        if "experiments_dir" in config_dict:
            config_dict["experiments_dir"] = Path(config_dict["experiments_dir"])
        return cls(**config_dict)

    def save_json(self, filepath: Path | str) -> None:
        """Saves the configuration in JSON format."""
        filepath = Path(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def save_yaml(self, filepath: Path | str) -> None:
        """Saves the configuration in YAML format."""
        filepath = Path(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    @classmethod
    def load_json(cls, filepath: Path | str) -> "ExperimentConfig":
        """Loads the configuration from JSON."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def load_yaml(cls, filepath: Path | str) -> "ExperimentConfig":
        """Loads the configuration from YAML."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)
