from pathlib import Path
from typing import Any, Dict, List, Optional

from .config_exp import AgentConfig, AgentMethod, ExperimentConfig

CONFIG_SUFFIXES = {".yaml": "yaml", ".yml": "yaml", ".json": "json"}


def default_configs() -> Dict[str, ExperimentConfig]:
    """Ready-made Nim experiments, one per family of learning agents."""
    return {
        "q_learning_vs_random": ExperimentConfig(
            first_agent=AgentConfig(method=AgentMethod.Q_LEARNING),
            second_agent=AgentConfig(method=AgentMethod.RANDOM),
        ),
        "sarsa_self_play": ExperimentConfig(
            first_agent=AgentConfig(method=AgentMethod.SARSA),
            second_agent=AgentConfig(method=AgentMethod.SARSA),
        ),
        "double_q_vs_optimal": ExperimentConfig(
            first_agent=AgentConfig(method=AgentMethod.DOUBLE_Q_LEARNING),
            second_agent=AgentConfig(method=AgentMethod.OPTIMAL),
        ),
        "monte_carlo_vs_random": ExperimentConfig(
            first_agent=AgentConfig(method=AgentMethod.OFF_POLICY_MONTE_CARLO),
            second_agent=AgentConfig(method=AgentMethod.RANDOM),
        ),
        "n_step_tree_backup_vs_random": ExperimentConfig(
            first_agent=AgentConfig(method=AgentMethod.N_STEP_TREE_BACKUP, n=3),
            second_agent=AgentConfig(method=AgentMethod.RANDOM),
        ),
        "value_iteration_vs_optimal": ExperimentConfig(
            first_agent=AgentConfig(method=AgentMethod.VALUE_ITERATION),
            second_agent=AgentConfig(method=AgentMethod.OPTIMAL),
            n_training_episodes=0,
        ),
    }


class ConfigManager:
    """Manages named Nim experiment configurations: save, load, compare and list them."""

    def __init__(self, config_dir: Path | str = Path("configs")):
        """
        :param config_dir: Directory where configurations will be saved and loaded from
        """
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._configs: Dict[str, ExperimentConfig] = {}

    def add_config(self, name: str, config: ExperimentConfig) -> None:
        self._configs[name] = config

    def add_defaults(self) -> None:
        """Registers the ready-made configurations, keeping any with the same name."""
        for name, config in default_configs().items():
            self._configs.setdefault(name, config)

    def get_config(self, name: str) -> Optional[ExperimentConfig]:
        """
        Gets a configuration by name.

        :param name: Name of the configuration to retrieve
        :return: `ExperimentConfig` instance if found, else None
        """
        return self._configs.get(name)

    def remove_config(self, name: str) -> None:
        if name not in self._configs:
            raise ValueError(f"Configuration '{name}' not found")
        del self._configs[name]

    def list_configs(self) -> List[str]:
        return sorted(self._configs)

    def save_config(self, name: str, format: str = "yaml") -> Path:
        """
        Saves a configuration to disk.

        :param name: Name of the configuration
        :param format: File format ('yaml' or 'json')
        :return: Path to the saved file
        """
        if name not in self._configs:
            raise ValueError(f"Configuration '{name}' not found")

        config = self._configs[name]
        filepath = self.config_dir / f"{name}.{format}"

        if format == "yaml":
            config.save_yaml(filepath)
        elif format == "json":
            config.save_json(filepath)
        else:
            raise ValueError(f"Format '{format}' not supported")

        return filepath

    def load_config(self, filepath: Path | str) -> ExperimentConfig:
        """
        Loads a configuration from a file.

        :param filepath: Path to the configuration file (.yaml, .yml or .json)
        :return: Loaded `ExperimentConfig` instance
        """
        filepath = Path(filepath)
        file_format = CONFIG_SUFFIXES.get(filepath.suffix)

        if file_format == "yaml":
            return ExperimentConfig.load_yaml(filepath)
        elif file_format == "json":
            return ExperimentConfig.load_json(filepath)
        else:
            raise ValueError(f"File format '{filepath.suffix}' not supported")

    def load_and_add(self, name: str, filepath: Path | str) -> None:
        self.add_config(name, self.load_config(filepath))

    def load_directory(self) -> List[str]:
        """
        Loads every configuration file of `config_dir`, named after its file stem.

        :return: Names of the loaded configurations
        """
        loaded = []
        for filepath in sorted(self.config_dir.iterdir()):
            if filepath.suffix in CONFIG_SUFFIXES:
                self.load_and_add(filepath.stem, filepath)
                loaded.append(filepath.stem)
        return loaded

    def save_all(self, format: str = "yaml") -> List[Path]:
        return [self.save_config(name, format) for name in self._configs]

    def compare_configs(self, name1: str, name2: str) -> Dict[str, Dict[str, Any]]:
        """
        Compares two configurations.

        :param name1: Name of the first configuration
        :param name2: Name of the second configuration
        :return: Mapping from dotted key (e.g. "first_agent.alpha") to both values
        """
        if name1 not in self._configs or name2 not in self._configs:
            raise ValueError("One or both configurations do not exist")

        differences: Dict[str, Dict[str, Any]] = {}
        self._compare_dicts(
            self._configs[name1].to_dict(), self._configs[name2].to_dict(), differences
        )
        return differences

    def _compare_dicts(
        self, dict1: Dict, dict2: Dict, differences: Dict, prefix: str = ""
    ) -> None:
        for key in set(dict1) | set(dict2):
            current_path = f"{prefix}.{key}" if prefix else key

            if key not in dict1:
                differences[current_path] = {"config1": None, "config2": dict2[key]}
            elif key not in dict2:
                differences[current_path] = {"config1": dict1[key], "config2": None}
            elif isinstance(dict1[key], dict) and isinstance(dict2[key], dict):
                self._compare_dicts(dict1[key], dict2[key], differences, current_path)
            elif dict1[key] != dict2[key]:
                differences[current_path] = {
                    "config1": dict1[key],
                    "config2": dict2[key],
                }
