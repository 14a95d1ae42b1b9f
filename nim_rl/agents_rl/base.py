import weakref
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, TypeVar, Union

import numpy as np

from ..state import Action, State

if TYPE_CHECKING:
    from ..game import Game

DEFAULT_THRESHOLD = 1e-4
DEFAULT_ALPHA = 0.5
DEFAULT_GAMMA = 1.0
DEFAULT_EPSILON = 1.0
DEFAULT_EPSILON_DECAY_FACTOR = 0.9
DEFAULT_MIN_EPSILON = 0.01
DEFAULT_N = 1

WIN_REWARD = 1.0
LOSE_REWARD = -1.0

T = TypeVar("T")


class DecayCadence(Enum):
    """When the exploration rate of an epsilon-greedy agent is decayed."""

    EPISODE = "episode"
    STEP = "step"


class TimeStep(NamedTuple):
    """
    One entry of an episode trajectory.

    `reward` is the reward that followed `action` (zero until it is known) and
    `behavior_prob` is the probability the behavior policy had of picking `action`.
    """

    state: State
    action: Action
    reward: float = 0.0
    behavior_prob: float = 1.0


class ValueTable(dict):
    """
    Mapping from State to expected return.

    Unseen states read as 0.0 without being inserted into the table.
    """

    def __missing__(self, key: State) -> float:
        return 0.0

    def __str__(self) -> str:
        return format_values(self)


def format_values(values: Dict[State, float]) -> str:
    """
    Renders a value table as one "state: value" line per entry.

    :param values: Value table to render
    :return: Text dump ordered by the sorted pile sizes of each state
    """
    items = sorted(values.items(), key=lambda item: sorted(item[0].piles))
    return "\n".join(f"{state}: {value:.6f}" for state, value in items)


def format_trajectory(trajectory: Sequence[TimeStep]) -> str:
    """Renders a trajectory as one "state | action | reward" line per time step."""
    return "\n".join(
        f"{step.state} | {step.action} | {step.reward}" for step in trajectory
    )


def sample(rng: np.random.Generator, items: Sequence[T]) -> T:
    """Picks one element uniformly at random."""
    return items[int(rng.integers(len(items)))]


def checked_child(state: State, action: Action) -> Optional[State]:
    """Afterstate of `action`, or None when the action is illegal in `state`."""
    return state.child(action) if action.is_valid(state) else None


class EpsilonGreedyPolicy:
    """
    Epsilon-greedy action selection.

    With probability `epsilon` a legal action is picked uniformly at random,
    otherwise a greedy action is picked uniformly at random, so that ties
    are never resolved by a fixed order.
    """

    def __init__(
        self,
        epsilon: float = DEFAULT_EPSILON,
        epsilon_decay_factor: float = DEFAULT_EPSILON_DECAY_FACTOR,
        min_epsilon: float = DEFAULT_MIN_EPSILON,
        cadence: DecayCadence = DecayCadence.EPISODE,
        seed: Optional[int] = None,
    ):
        """
        :param epsilon: Initial exploration probability
        :param epsilon_decay_factor: Multiplicative decay applied by `update_epsilon`
        :param min_epsilon: Floor of the exploration probability
        :param cadence: Event (episode end or agent step) that triggers the decay
        :param seed: Seed of the private random generator
        """
        self.epsilon = epsilon
        self.epsilon_decay_factor = epsilon_decay_factor
        self.min_epsilon = min_epsilon
        self.cadence = cadence
        self.rng = np.random.default_rng(seed)

    def select_action(self, legal_actions: Sequence[Action], greedy_actions: Sequence[Action]) -> Action:
        """
        Draws one action.

        :param legal_actions: Every legal action of the current state
        :param greedy_actions: Legal actions whose value ties the maximum
        :return: Selected action
        """
        if self.rng.random() < self.epsilon:
            return sample(self.rng, legal_actions)
        return sample(self.rng, greedy_actions)

    def action_probabilities(
        self, legal_actions: Sequence[Action], greedy_actions: Sequence[Action]
    ) -> np.ndarray:
        """
        Exact probability of each legal action under the current epsilon.

        :return: Array aligned with `legal_actions`
        """
        greedy = set(greedy_actions)
        probs = np.full(len(legal_actions), self.epsilon / len(legal_actions))
        bonus = (1.0 - self.epsilon) / len(greedy)
        for i, action in enumerate(legal_actions):
            if action in greedy:
                probs[i] += bonus
        return probs

    def update_epsilon(self) -> None:
        self.epsilon = max(self.min_epsilon, self.epsilon * self.epsilon_decay_factor)

    def decay(self, event: DecayCadence) -> None:
        """Decays epsilon if `event` matches the configured cadence."""
        if event == self.cadence:
            self.update_epsilon()


class Agent(ABC):
    """
    Base class of every Nim player.

    The game calls `reset` at the start of an episode, `step` on each of the
    agent's turns and, in training mode, `update` once the episode is over.
    An agent keeps weak references to the games it is attached to so that it
    can detach itself; a single instance must not occupy both seats of a game.
    """

    exploration: Optional[EpsilonGreedyPolicy] = None

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)
        self.current_state: Optional[State] = None
        self._games: "weakref.WeakSet[Game]" = weakref.WeakSet()

    def get_games(self) -> Set["Game"]:
        return set(self._games)

    def initialize(self, states: Sequence[State]) -> None:
        """Pre-population hook called with the full state space of a game."""

    def reset(self) -> None:
        """Clears per-episode bookkeeping; learned values are kept."""
        self.current_state = None

    def step(self, game: "Game", is_evaluation: bool = False) -> Action:
        """
        Chooses the action to play in the game's current state.

        :param game: Game whose `state` is the position to move from
        :param is_evaluation: If True, act greedily and do not learn
        :return: Selected action
        """
        state = game.state.copy()
        action = self.policy(state, is_evaluation)
        self.current_state = checked_child(state, action)
        if not is_evaluation:
            self.decay_exploration(DecayCadence.STEP)
        return action

    @abstractmethod
    def policy(self, state: State, is_evaluation: bool = False) -> Action:
        pass

    def update(self, prior_state: Optional[State], new_state: State, reward: float) -> None:
        """
        Learns from a transition; the default only tracks the new state.

        :param prior_state: Afterstate produced by the agent's previous move
        :param new_state: State observed after the opponent's reply (or terminal state)
        :param reward: Reward of the transition
        """
        self.current_state = new_state

    def decay_exploration(self, event: DecayCadence) -> None:
        if self.exploration is not None:
            self.exploration.decay(event)

    def detach(self) -> None:
        """Removes the agent from every game it is attached to."""
        for game in list(self._games):
            game.remove_player(self)

    def _add_game(self, game: "Game") -> None:
        self._games.add(game)

    def _remove_game(self, game: "Game") -> None:
        self._games.discard(game)


class RLAgent(Agent):
    """
    Base class for agents driven by a table of afterstate values.

    The value of taking `action` in `state` is the value of `state.child(action)`.
    """

    def __init__(self, seed: Optional[int] = None):
        super().__init__(seed)
        self.values = ValueTable()
        self.greedy_value = 0.0
        self.legal_actions: List[Action] = []
        self.greedy_actions: List[Action] = []

    def _spawn_seed(self) -> int:
        """Seed for a capability owned by this agent, derived from its own generator."""
        return int(self.rng.integers(2**32))

    def get_values(self) -> ValueTable:
        return ValueTable(self.values)

    def set_values(self, values: Dict[State, float]) -> None:
        self.values = ValueTable(values)

    def initialize(self, states: Sequence[State]) -> None:
        """Adds a zero entry for every state not seen yet; learned values are kept."""
        for state in states:
            self.values.setdefault(state, 0.0)

    def _selection_value(self, state: State) -> float:
        return self.values[state]

    def action_values(
        self,
        state: State,
        actions: Sequence[Action],
        values: Optional[Dict[State, float]] = None,
    ) -> np.ndarray:
        """
        Values of the afterstates reached by each action.

        :param state: State the actions are taken from
        :param actions: Actions to evaluate
        :param values: Table to read from (defaults to the table used for selection)
        :return: Array aligned with `actions`
        """
        lookup = self._selection_value if values is None else values.__getitem__
        return np.array([lookup(state.child(action)) for action in actions], dtype=float)

    def find_greedy_actions(
        self,
        state: State,
        actions: Sequence[Action],
        values: Optional[Dict[State, float]] = None,
    ) -> List[Action]:
        """Actions whose afterstate value ties the maximum."""
        action_values = self.action_values(state, actions, values)
        is_greedy = np.isclose(action_values, action_values.max())
        return [action for action, greedy in zip(actions, is_greedy) if greedy]

    def policy(self, state: State, is_evaluation: bool = False) -> Action:
        self.legal_actions = state.legal_actions()
        if not self.legal_actions:
            raise ValueError(f"No legal action in terminal state '{state}'")
        action_values = self.action_values(state, self.legal_actions)
        self.greedy_value = float(action_values.max())
        self.greedy_actions = [
            action
            for action, greedy in zip(
                self.legal_actions, np.isclose(action_values, self.greedy_value)
            )
            if greedy
        ]
        if is_evaluation:
            return sample(self.rng, self.greedy_actions)
        return self.policy_impl(self.legal_actions, self.greedy_actions)

    @abstractmethod
    def policy_impl(self, legal_actions: List[Action], greedy_actions: List[Action]) -> Action:
        """Strategy-specific selection used in training mode."""

    def expected_value(
        self,
        state: State,
        values: Optional[Dict[State, float]] = None,
        greedy_values: Optional[Dict[State, float]] = None,
    ) -> float:
        """
        Expected afterstate value of `state` under the epsilon-greedy policy.

        :param state: State the next action is taken from
        :param values: Table providing the afterstate values
        :param greedy_values: Table defining the greedy actions (defaults to `values`)
        :return: Exact expectation, 0.0 for terminal states
        """
        legal_actions = state.legal_actions()
        if not legal_actions:
            return 0.0
        greedy_actions = self.find_greedy_actions(
            state, legal_actions, greedy_values if greedy_values is not None else values
        )
        probs = self.exploration.action_probabilities(legal_actions, greedy_actions)
        return float(np.dot(probs, self.action_values(state, legal_actions, values)))

    def target_probability(self, state: State, action: Action) -> float:
        """Probability of `action` under the greedy target policy (uniform over ties)."""
        greedy_actions = self.find_greedy_actions(state, state.legal_actions())
        return 1.0 / len(greedy_actions) if action in greedy_actions else 0.0

    def optimal_actions_ratio(self, states: Iterable[State]) -> float:
        """
        Fraction of winning positions in which every greedy action is optimal.

        A position is winning when one of its children has a nim-sum of zero;
        an action is optimal when it moves to such a child.

        :param states: States to inspect
        :return: Ratio in [0, 1] (1.0 when no winning position is given)
        """
        n_winning = n_optimal = 0
        for state in states:
            if state.is_terminal() or state.nim_sum() == 0:
                continue
            n_winning += 1
            greedy_actions = self.find_greedy_actions(state, state.legal_actions())
            if all(state.child(action).nim_sum() == 0 for action in greedy_actions):
                n_optimal += 1
        return n_optimal / n_winning if n_winning else 1.0

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Writes the value table as a plain "state: value" dump.

        :param filepath: Path of the text file
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(format_values(self.get_values()) + "\n")

        print(f"Value table saved to {filepath}")

    def print_statistics(self) -> None:
        """Print statistics about the value table."""
        values = np.array(list(self.get_values().values()), dtype=float)
        if values.size == 0:
            values = np.zeros(1)
        print("\n" + "=" * 50)
        print(f"{self.__class__.__name__} VALUE TABLE STATISTICS")
        print("=" * 50)
        print(f"Entries: {len(self.get_values())}")
        print(f"Values mean: {np.mean(values):.4f}")
        print(f"Values std: {np.std(values):.4f}")
        print(f"Values min: {np.min(values):.4f}")
        print(f"Values max: {np.max(values):.4f}")
        print(f"Non-zero entries: {np.count_nonzero(values)} / {values.size}")
        if self.exploration is not None:
            print(f"Epsilon: {self.exploration.epsilon:.4f}")
        print("=" * 50 + "\n")

    def behavior_probability(self, action: Action) -> float:
        """
        Probability the last `policy` call had of selecting `action`.

        Uses the legal and greedy actions recorded by that call.
        """
        if self.exploration is None:
            return 1.0 / len(self.greedy_actions) if action in self.greedy_actions else 0.0
        probs = self.exploration.action_probabilities(self.legal_actions, self.greedy_actions)
        return float(probs[self.legal_actions.index(action)])
