import sys
from typing import Optional, TextIO

from ..state import Action, State
from .base import Agent, sample


class RandomAgent(Agent):
    """Plays a uniformly random legal action."""

    def policy(self, state: State, is_evaluation: bool = False) -> Action:
        return sample(self.rng, state.legal_actions())


class OptimalAgent(Agent):
    """
    Plays perfect Nim.

    Moves to a child whose nim-sum is zero whenever one exists; from a losing
    position (nim-sum zero) every move loses, so a random legal action is played.
    """

    def policy(self, state: State, is_evaluation: bool = False) -> Action:
        legal_actions = state.legal_actions()
        winning_actions = [
            action for action in legal_actions if state.child(action).nim_sum() == 0
        ]
        return sample(self.rng, winning_actions or legal_actions)


class HumanAgent(Agent):
    """Reads its moves from a text stream, one "pile count" line per move."""

    def __init__(
        self,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
    ):
        """
        :param input_stream: Stream the moves are read from (stdin by default)
        :param output_stream: Stream prompts are written to (stdout by default)
        """
        super().__init__()
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        self.output_stream = output_stream if output_stream is not None else sys.stdout

    def policy(self, state: State, is_evaluation: bool = False) -> Action:
        while True:
            print(f"Current state: {state}", file=self.output_stream)
            print("Enter pile index and number of objects: ", end="", file=self.output_stream)
            self.output_stream.flush()
            line = self.input_stream.readline()
            if not line:
                raise EOFError("No more moves to read")
            action = Action.from_string(line)
            if not action.failed and action.is_valid(state):
                return action
            print("Illegal move, try again.", file=self.output_stream)
