import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import gymnasium as gym
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .agents_rl import HumanAgent, RLAgent
from .config_exp import ExperimentConfig, create_agent
from .game import Game, MatchResult
from .state import State


class NimExperiment:
    """
    Trains two agents against each other on one Nim position, evaluates the
    first one against a reference opponent from both seats and stores the
    configuration, training curves, block metrics and value table.
    """

    def __init__(self, config: ExperimentConfig):
        """
        :param config: Experiment configuration object containing all settings for the experiment
        """
        self.config = config
        self.exp_dir = None
        self.initial_state = State(config.piles)

        self.first_agent = create_agent(config.first_agent)
        self.second_agent = create_agent(config.second_agent)
        self.evaluation_opponent = create_agent(config.evaluation_opponent)
        self.game = Game(self.initial_state, self.first_agent, self.second_agent)

    def _setup_experiment_dir(self) -> Path:
        """Creates and returns the experiment directory."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        exp_dir = (
            Path(self.config.experiments_dir)
            / f"nim_{'_'.join(map(str, self.config.piles))}"
            / f"{self.config.first_agent.method.value}_vs_{self.config.second_agent.method.value}_{timestamp}"
        )
        exp_dir.mkdir(parents=True, exist_ok=True)
        return exp_dir

    def _save_experiment_config(self) -> None:
        self.config.save_json(self.exp_dir / "config.json")
        self.config.save_yaml(self.exp_dir / "config.yaml")

    def plot_training_results(
        self, episode_rewards: np.ndarray, window_size: int = 100
    ) -> None:
        """
        Plot first-player rewards with a moving average, and the cumulative win rate.

        :param episode_rewards: Array of first-player rewards per episode (+1 / -1)
        :param window_size: Window size for moving average
        """
        plt.figure(figsize=(12, 5))

        plt.subplot(1, 2, 1)
        plt.plot(episode_rewards, alpha=0.3, label="Episode Reward")

        if len(episode_rewards) >= window_size:
            moving_avg = np.convolve(
                episode_rewards, np.ones(window_size) / window_size, mode="valid"
            )
            plt.plot(
                range(window_size - 1, len(episode_rewards)),
                moving_avg,
                label=f"{window_size}-Episode Moving Average",
                linewidth=2,
            )

        plt.xlabel("Episode")
        plt.ylabel("Reward")
        plt.title("Training Progress (first player)")
        plt.legend()
        plt.grid(True, alpha=0.3)

        plt.subplot(1, 2, 2)
        wins = np.asarray(episode_rewards) > 0
        plt.plot(np.cumsum(wins) / np.arange(1, len(wins) + 1))
        plt.ylim(0.0, 1.0)
        plt.xlabel("Episode")
        plt.ylabel("Win rate")
        plt.title("Cumulative First-Player Win Rate")
        plt.grid(True, alpha=0.3)

        plt.tight_layout()
        plt.savefig(self.exp_dir / "training_results.png", dpi=150, bbox_inches="tight")
        plt.close()

    def save_training_logs(
        self, episode_rewards: np.ndarray, window_size: int = 100
    ) -> pd.DataFrame:
        """
        Saves training logs every `window_size` episodes to a CSV file.

        For each block of `window_size` episodes, it stores the mean reward, the
        first-player win rate and the standard deviation of the rewards.

        :param episode_rewards: Array of first-player rewards per episode
        :param window_size: Number of episodes per logging block
        :return: The logged metrics
        """
        rewards = np.asarray(episode_rewards, dtype=float)
        metrics_data = []

        for end_episode in range(window_size, len(rewards) + 1, window_size):
            start_episode = end_episode - window_size
            block_rewards = rewards[start_episode:end_episode]
            metrics_data.append(
                {
                    "iteration": end_episode,
                    "window_start": start_episode + 1,
                    "window_end": end_episode,
                    "mean": float(np.mean(block_rewards)),
                    "win_rate": float(np.mean(block_rewards > 0)),
                    "std": float(np.std(block_rewards)),
                }
            )

        df_metrics = pd.DataFrame(
            metrics_data,
            columns=["iteration", "window_start", "window_end", "mean", "win_rate", "std"],
        )
        df_metrics.to_csv(self.exp_dir / "training_logs.csv", index=False)
        return df_metrics

    def evaluate(self, n_episodes: int) -> Dict[str, MatchResult]:
        """
        Plays the first agent greedily against the evaluation opponent, from both seats.

        :param n_episodes: Number of evaluation episodes per seat
        :return: Match results keyed by the seat of the first agent
        """
        as_first = Game(self.initial_state, self.first_agent, self.evaluation_opponent)
        first_result = as_first.play(n_episodes, verbose=True)
        as_first.remove_player(self.first_agent)
        as_first.remove_player(self.evaluation_opponent)

        as_second = Game(self.initial_state, self.evaluation_opponent, self.first_agent)
        second_result = as_second.play(n_episodes, verbose=True)
        as_second.remove_player(self.first_agent)
        as_second.remove_player(self.evaluation_opponent)

        return {"first": first_result, "second": second_result}

    def demonstrate(self, n_episodes: int) -> List[float]:
        """
        Plays the first agent greedily in the gymnasium environment and prints each episode.

        :param n_episodes: Number of episodes to show
        :return: Total reward of each episode
        """
        print(f"\nDemonstrating learned policy (first {n_episodes} episodes):")
        print("-" * 70)

        opponent = create_agent(self.config.evaluation_opponent)
        env = gym.make(
            "nim_rl/Nim-v0",
            piles=tuple(self.config.piles),
            opponent=opponent,
            render_mode="ansi",
        )
        episode_rewards = []
        for episode in range(n_episodes):
            observation, info = env.reset()
            episode_reward = 0.0
            trajectory = [env.render()]
            done = False

            while not done:
                action = self.first_agent.policy(State(observation), is_evaluation=True)
                observation, reward, terminated, truncated, info = env.step(
                    (action.pile_id, action.num_objects)
                )
                episode_reward += reward
                trajectory.append(env.render())
                done = terminated or truncated

            episode_rewards.append(episode_reward)
            print(f"Episode {episode + 1}: Reward = {episode_reward:.1f}")
            print(f"  Trajectory: {' -> '.join(trajectory)}")

        print("-" * 70)
        env.close()
        return episode_rewards

    def run(self) -> Dict[str, Any]:
        """
        Runs the Nim experiment.

        :return: Dictionary containing results and metrics from the experiment
        """
        self.exp_dir = self._setup_experiment_dir()

        print("=" * 80)
        print(f"EXPERIMENT: {self.exp_dir.name}")
        print("=" * 80)

        self._save_experiment_config()

        print(f"STARTING TRAINING - Nim {self.initial_state}")
        print("-" * 70)
        print(f"First agent: {self.config.first_agent.method.value}")
        print(f"Second agent: {self.config.second_agent.method.value}")
        print(f"Evaluation opponent: {self.config.evaluation_opponent.method.value}")
        print(f"Training episodes: {self.config.n_training_episodes}")
        print(f"Alpha: {self.config.first_agent.alpha}")
        print(f"Gamma: {self.config.first_agent.gamma}")
        print(
            f"Epsilon: {self.config.first_agent.epsilon} -> {self.config.first_agent.min_epsilon} "
            f"(decay: {self.config.first_agent.epsilon_decay_factor} per {self.config.first_agent.decay_cadence.value})"
        )
        print("=" * 70)

        print("ENVIRONMENT INFORMATION")
        print("-" * 70)
        print(f"Initial piles: {self.initial_state}")
        print(f"Nim-sum: {self.initial_state.nim_sum()}")
        print(f"Number of states: {len(self.game.all_states)}")
        print("=" * 70 + "\n")

        start = time.time()
        episode_rewards = self.game.train(self.config.n_training_episodes, verbose=True)
        training_time = time.time() - start
        print(f"\nTraining completed in {training_time:.2f}s")

        if isinstance(self.first_agent, RLAgent):
            self.first_agent.print_statistics()

        print("Starting evaluation...\n")
        results = self.evaluate(self.config.n_eval_episodes)

        print("\n" + "=" * 70)
        print("EVALUATION RESULTS")
        print("=" * 70)
        for seat, result in results.items():
            win_rate = result.first_win_rate if seat == "first" else 1.0 - result.first_win_rate
            print(f"As {seat} player: {win_rate * 100:.1f}% wins over {result.n_episodes} episodes")
        optimal_ratio = None
        if isinstance(self.first_agent, RLAgent):
            optimal_ratio = self.first_agent.optimal_actions_ratio(self.game.all_states)
            print(f"Optimal greedy actions: {optimal_ratio * 100:.1f}% of winning positions")
        print("=" * 70 + "\n")

        if len(episode_rewards) > 0:
            print("Generating training visualization...")
            self.plot_training_results(episode_rewards, window_size=self.config.log_window)
            self.save_training_logs(episode_rewards, window_size=self.config.log_window)

        if isinstance(self.first_agent, RLAgent):
            self.first_agent.save(self.exp_dir / "values.txt")

        if self.config.n_demo_episodes > 0 and not isinstance(self.first_agent, HumanAgent):
            self.demonstrate(self.config.n_demo_episodes)

        print("\n" + "=" * 80)
        print("EXPERIMENT SUMMARY")
        print("=" * 80)
        print(f"Directory: {self.exp_dir}")

        return {
            "exp_dir": self.exp_dir,
            "episode_rewards": episode_rewards,
            "evaluation": results,
            "optimal_actions_ratio": optimal_ratio,
            "training_time": training_time,
        }
