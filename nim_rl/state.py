"""
Nim game primitives.

A `State` is the list of pile sizes of a Nim position and an `Action` removes
a positive number of objects from one pile. Two states holding the same pile
sizes in a different order describe the same position, so equality and
hashing are defined over the multiset of pile sizes.
"""

import logging
from dataclasses import dataclass
from functools import reduce
from operator import xor
from typing import Iterable, List, TextIO, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Action:
    """Removes `num_objects` objects from the pile at index `pile_id`."""

    pile_id: int
    num_objects: int

    @classmethod
    def invalid(cls) -> "Action":
        """Sentinel returned when an action could not be parsed."""
        return cls(-1, -1)

    @property
    def failed(self) -> bool:
        return self.pile_id < 0 and self.num_objects < 0

    def is_valid(self, state: "State") -> bool:
        """
        Checks whether the action can be applied to a state.

        :param state: State the action would be applied to
        :return: True if the pile exists and holds at least `num_objects` objects
        """
        return (
            0 <= self.pile_id < len(state)
            and 1 <= self.num_objects <= state[self.pile_id]
        )

    @classmethod
    def from_string(cls, line: str) -> "Action":
        """
        Parses an action from a line holding two integers: pile index and count.

        Malformed input is not an exception: the invalid sentinel is returned
        and the caller is expected to check `failed`.

        :param line: Text line such as "0 3"
        :return: Parsed action, or `Action.invalid()`
        """
        tokens = line.split()
        if len(tokens) != 2:
            logger.error("Invalid input: %r", line)
            return cls.invalid()
        try:
            pile_id, num_objects = int(tokens[0]), int(tokens[1])
        except ValueError:
            logger.error("Invalid input: %r", line)
            return cls.invalid()
        return cls(pile_id, num_objects)

    def __str__(self) -> str:
        suffix = "s" if self.num_objects > 1 else ""
        return f"From pile {self.pile_id} remove {self.num_objects} object{suffix}"


class State:
    """
    Pile sizes of a Nim position.

    The state is mutated in place by `apply_action`/`undo_action` during play;
    `child`/`parent` return new states instead. States used as value-table keys
    must not be mutated afterwards.
    """

    __slots__ = ("_piles", "failed")

    def __init__(self, piles: Iterable[int] = ()):
        self._piles: List[int] = [int(pile) for pile in piles]
        if any(pile < 0 for pile in self._piles):
            raise ValueError(f"Pile sizes must be non-negative, got {self._piles}")
        self.failed = False

    @classmethod
    def from_string(cls, line: str) -> "State":
        """
        Parses a state from a line of whitespace-separated non-negative integers.

        On malformed input an empty state with `failed` set is returned.

        :param line: Text line such as "3 4 5"
        :return: Parsed state
        """
        try:
            piles = [int(token) for token in line.split()]
        except ValueError:
            piles = None
        if not piles or any(pile < 0 for pile in piles):
            logger.error("Invalid input: %r", line)
            state = cls()
            state.failed = True
            return state
        return cls(piles)

    @property
    def piles(self) -> Tuple[int, ...]:
        return tuple(self._piles)

    def copy(self) -> "State":
        return State(self._piles)

    def clear(self) -> None:
        self._piles.clear()

    def is_empty(self) -> bool:
        return not self._piles

    def is_terminal(self) -> bool:
        """A state without objects left (or without piles) ends the game."""
        return not any(self._piles)

    def nim_sum(self) -> int:
        """Bitwise XOR of all pile sizes; zero means the player to move loses."""
        return reduce(xor, self._piles, 0)

    def legal_actions(self) -> List[Action]:
        """
        Lists every legal action, ordered by pile and then by count.

        :return: List of actions (empty for terminal states)
        """
        return [
            Action(pile_id, num_objects)
            for pile_id, pile in enumerate(self._piles)
            for num_objects in range(1, pile + 1)
        ]

    def apply_action(self, action: Action) -> None:
        self._check_range(action.pile_id)
        self._piles[action.pile_id] -= action.num_objects

    def undo_action(self, action: Action) -> None:
        self._check_range(action.pile_id)
        self._piles[action.pile_id] += action.num_objects

    def child(self, action: Action) -> "State":
        """Returns the state reached by applying `action` to this state."""
        child = self.copy()
        child.apply_action(action)
        return child

    def parent(self, action: Action) -> "State":
        """Returns the state from which `action` leads to this state."""
        parent = self.copy()
        parent.undo_action(action)
        return parent

    def children(self) -> List["State"]:
        return [self.child(action) for action in self.legal_actions()]

    def get_all_states(self) -> List["State"]:
        """
        Enumerates every state reachable from this one.

        Each pile is expanded recursively to every size between 0 and its
        current size. Permutations of the same multiset are reported once.

        :return: List of distinct states, this state first
        """
        all_states: List[State] = []
        self._expand(list(self._piles), 0, all_states)
        return list(dict.fromkeys(all_states))

    def _expand(self, piles: List[int], pile_id: int, all_states: List["State"]) -> None:
        if pile_id == len(piles):
            all_states.append(State(piles))
            return
        original = piles[pile_id]
        for size in range(original, -1, -1):
            piles[pile_id] = size
            self._expand(piles, pile_id + 1, all_states)
        piles[pile_id] = original

    def _check_range(self, pile_id: int) -> None:
        if not 0 <= pile_id < len(self._piles):
            raise IndexError(f"Pile index {pile_id} is out of range.")

    def __len__(self) -> int:
        return len(self._piles)

    def __getitem__(self, pile_id: int) -> int:
        self._check_range(pile_id)
        return self._piles[pile_id]

    def __setitem__(self, pile_id: int, value: int) -> None:
        self._check_range(pile_id)
        self._piles[pile_id] = value

    def __iter__(self):
        return iter(self._piles)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return sorted(self._piles) == sorted(other._piles)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._piles)))

    def __str__(self) -> str:
        return " ".join(str(pile) for pile in self._piles)

    def __repr__(self) -> str:
        return f"State({self._piles})"


def read_state(stream: TextIO) -> Tuple[State, bool]:
    """
    Reads one state from a text stream.

    :param stream: Stream positioned at a line of pile sizes
    :return: Tuple of (state, ok); `ok` is False on end of stream or malformed input
    """
    line = stream.readline()
    if not line:
        return State(), False
    state = State.from_string(line)
    return state, not state.failed


def read_action(stream: TextIO) -> Tuple[Action, bool]:
    """
    Reads one action from a text stream.

    :param stream: Stream positioned at a line "pile count"
    :return: Tuple of (action, ok); `ok` is False on end of stream or malformed input
    """
    line = stream.readline()
    if not line:
        return Action.invalid(), False
    action = Action.from_string(line)
    return action, not action.failed
