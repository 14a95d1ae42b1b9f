import logging
from pathlib import Path

from nim_rl import (
    AgentConfig,
    AgentMethod,
    ConfigManager,
    ExperimentConfig,
    Game,
    NimExperiment,
    State,
)
from nim_rl.agents_rl import HumanAgent


def play_against(experiment: NimExperiment) -> None:
    """Lets a human play interactively against the trained first agent."""
    human = HumanAgent()
    human_first = input("\nDo you want to move first? (y/n): ").strip().lower() == "y"
    if human_first:
        game = Game(experiment.initial_state, human, experiment.first_agent)
    else:
        game = Game(experiment.initial_state, experiment.first_agent, human)

    try:
        while True:
            winner = game.run_episode(is_evaluation=True)
            human_won = (winner == 0) == human_first
            print("You win!" if human_won else "You lose!")
            if input("Play again? (y/n): ").strip().lower() != "y":
                break
    except EOFError:
        print("\nNo more input, bye")


def main(config: ExperimentConfig) -> None:
    """
    Main function to configure and run a Nim experiment.

    Configure your agents and parameters here.
    """
    experiment = NimExperiment(config)
    results = experiment.run()

    for seat, result in results["evaluation"].items():
        print(f"{seat}: {result.first_wins} - {result.second_wins}")

    if input("\nDo you want to play against the trained agent? (y/n): ").strip().lower() == "y":
        play_against(experiment)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    PILES = [3, 4, 5]  # Initial pile sizes
    CONFIG_FILE = None  # e.g. Path("configs/q_learning_vs_random.yaml")

    if CONFIG_FILE is not None:
        config = ConfigManager(Path(CONFIG_FILE).parent).load_config(CONFIG_FILE)
    else:
        config = ExperimentConfig(
            piles=PILES,
            first_agent=AgentConfig(
                method=AgentMethod.Q_LEARNING,
                alpha=0.5,  # Learning rate
                gamma=1.0,  # Discount factor
                epsilon=1.0,  # Probability of choosing a random action at the start of training
                epsilon_decay_factor=0.999,  # Multiplicative decay of epsilon per episode
                min_epsilon=0.01,  # Minimum probability of choosing a random action
                seed=42,
            ),
            second_agent=AgentConfig(method=AgentMethod.RANDOM, seed=7),
            evaluation_opponent=AgentConfig(method=AgentMethod.OPTIMAL),
            n_training_episodes=10_000,  # Number of training episodes
            n_eval_episodes=1_000,  # Number of evaluation episodes per seat
            n_demo_episodes=3,  # Episodes shown through the gymnasium environment
            log_window=100,  # Episodes per block in training_logs.csv
            experiments_dir=Path("results"),
        )

    print(f"Nim {State(config.piles)}")
    main(config)
