"""Tests for experiment configuration and the configuration manager."""

from pathlib import Path

import pytest

from nim_rl.agents_rl import (
    DecayCadence,
    HumanAgent,
    ImportanceSampling,
    NStepTreeBackupAgent,
    OffPolicyMonteCarloAgent,
    QLearningAgent,
    ValueIterationAgent,
)
from nim_rl.config_exp import (
    AGENT_CLASSES,
    AgentConfig,
    AgentMethod,
    ExperimentConfig,
    create_agent,
)
from nim_rl.config_manager import ConfigManager, default_configs


class TestAgentConfig:
    def test_every_method_has_a_class(self):
        assert set(AGENT_CLASSES) == set(AgentMethod)

    @pytest.mark.parametrize("method", list(AgentMethod))
    def test_create_every_agent(self, method):
        agent = create_agent(AgentConfig(method=method, seed=0))
        assert isinstance(agent, AGENT_CLASSES[method])

    def test_parameters_reach_the_agent(self):
        agent = create_agent(
            AgentConfig(
                method=AgentMethod.Q_LEARNING,
                alpha=0.1,
                gamma=0.9,
                epsilon=0.3,
                decay_cadence=DecayCadence.STEP,
            )
        )
        assert isinstance(agent, QLearningAgent)
        assert agent.alpha == 0.1
        assert agent.gamma == 0.9
        assert agent.exploration.epsilon == 0.3
        assert agent.exploration.cadence == DecayCadence.STEP

    def test_method_specific_parameters(self):
        tree = create_agent(AgentConfig(method=AgentMethod.N_STEP_TREE_BACKUP, n=4))
        assert isinstance(tree, NStepTreeBackupAgent) and tree.n == 4

        mc = create_agent(
            AgentConfig(
                method=AgentMethod.OFF_POLICY_MONTE_CARLO,
                importance_sampling=ImportanceSampling.NORMAL,
            )
        )
        assert isinstance(mc, OffPolicyMonteCarloAgent)
        assert mc.importance_sampling == ImportanceSampling.NORMAL

        vi = create_agent(AgentConfig(method=AgentMethod.VALUE_ITERATION, threshold=1e-6))
        assert isinstance(vi, ValueIterationAgent) and vi.threshold == 1e-6

    def test_unused_parameters_are_ignored(self):
        params = AgentConfig(method=AgentMethod.HUMAN).get_params()
        assert params == {}
        assert isinstance(create_agent(AgentConfig(method=AgentMethod.HUMAN)), HumanAgent)

    def test_plain_values_are_accepted(self):
        config = AgentConfig(method="sarsa", decay_cadence="step", importance_sampling="normal")
        assert config.method == AgentMethod.SARSA
        assert config.decay_cadence == DecayCadence.STEP
        assert config.importance_sampling == ImportanceSampling.NORMAL

    def test_unknown_method_lists_supported_values(self):
        with pytest.raises(ValueError, match="Supported values are"):
            AgentConfig(method="deep_q")

    def test_dict_round_trip(self):
        config = AgentConfig(method=AgentMethod.N_STEP_SARSA, n=3, seed=5)
        data = config.to_dict()
        assert data["method"] == "n_step_sarsa"
        assert data["decay_cadence"] == "episode"
        assert AgentConfig.from_dict(data) == config


class TestExperimentConfig:
    def test_defaults(self):
        config = ExperimentConfig()
        assert config.piles == [3, 4, 5]
        assert config.second_agent.method == AgentMethod.RANDOM
        assert config.evaluation_opponent.method == AgentMethod.OPTIMAL

    @pytest.mark.parametrize("extension", ["json", "yaml"])
    def test_file_round_trip(self, tmp_path, extension):
        config = ExperimentConfig(
            piles=[1, 2, 3],
            first_agent=AgentConfig(method=AgentMethod.DOUBLE_SARSA, alpha=0.2),
            n_training_episodes=50,
            experiments_dir=tmp_path / "runs",
        )
        filepath = tmp_path / f"config.{extension}"
        getattr(config, f"save_{extension}")(filepath)
        loaded = getattr(ExperimentConfig, f"load_{extension}")(filepath)
        assert loaded == config
        assert isinstance(loaded.experiments_dir, Path)

    def test_agent_section_must_be_a_dict(self):
        with pytest.raises(ValueError):
            ExperimentConfig.from_dict({"first_agent": "q_learning"})


class TestConfigManager:
    def test_add_list_and_remove(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.add_config("b", ExperimentConfig())
        manager.add_config("a", ExperimentConfig())
        assert manager.list_configs() == ["a", "b"]
        manager.remove_config("a")
        assert manager.get_config("a") is None
        with pytest.raises(ValueError):
            manager.remove_config("a")

    def test_save_and_load_directory(self, tmp_path):
        manager = ConfigManager(tmp_path / "configs")
        manager.add_defaults()
        paths = manager.save_all("json")
        assert len(paths) == len(default_configs())

        other = ConfigManager(tmp_path / "configs")
        loaded = other.load_directory()
        assert sorted(loaded) == sorted(default_configs())
        assert other.get_config("sarsa_self_play") == manager.get_config("sarsa_self_play")

    def test_unsupported_formats(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.add_config("x", ExperimentConfig())
        with pytest.raises(ValueError):
            manager.save_config("x", "toml")
        with pytest.raises(ValueError):
            manager.save_config("missing")
        with pytest.raises(ValueError):
            manager.load_config(tmp_path / "x.toml")

    def test_compare_configs(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.add_config("a", ExperimentConfig())
        manager.add_config(
            "b",
            ExperimentConfig(
                piles=[1, 2, 3],
                first_agent=AgentConfig(alpha=0.1),
            ),
        )
        differences = manager.compare_configs("a", "b")
        assert differences["piles"] == {"config1": [3, 4, 5], "config2": [1, 2, 3]}
        assert differences["first_agent.alpha"] == {"config1": 0.5, "config2": 0.1}
        assert "second_agent.method" not in differences
        with pytest.raises(ValueError):
            manager.compare_configs("a", "missing")
