"""Confirmation and answer providers.

The orchestrator never calls input() itself. It asks a Prompter, so scripted
callers and tests can answer without a terminal.
"""

from typing import Callable, Optional, Sequence


class Prompter:
    def confirm(self, message: str, default: bool = False) -> bool:
        raise NotImplementedError

    def ask(self, message: str, default: Optional[str] = None,
            validate: Optional[Callable[[str], Optional[str]]] = None) -> str:
        """Free-text answer. `validate` returns an error message or None."""
        raise NotImplementedError

    def choose(self, message: str, choices: Sequence[tuple[str, str]], default: int = 0) -> str:
        """Pick one of (label, value) pairs and return the value."""
        raise NotImplementedError


class ConsolePrompter(Prompter):
    def __init__(self, input_fn: Callable[[str], str] = input, output_fn: Callable[[str], None] = print):
        self._input = input_fn
        self._print = output_fn

    def confirm(self, message: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            answer = self._input(f"{message} [{hint}] ").strip().lower()
            if not answer:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            self._print("Please answer y or n.")

    def ask(self, message, default=None, validate=None) -> str:
        suffix = f" [{default}]" if default is not None else ""
        while True:
            answer = self._input(f"{message}{suffix} ").strip()
            if not answer and default is not None:
                answer = str(default)
            error = validate(answer) if validate else None
            if error is None:
                return answer
            self._print(error)

    def choose(self, message, choices, default=0) -> str:
        self._print(message)
        for i, (label, _) in enumerate(choices, 1):
            self._print(f"  {i}. {label}")
        while True:
            answer = self._input(f"Choice [{default + 1}] ").strip()
            if not answer:
                return choices[default][1]
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1][1]
            self._print(f"Enter a number between 1 and {len(choices)}.")


class ScriptedPrompter(Prompter):
    """Non-interactive answers: a fixed confirm result plus optional canned answers."""

    def __init__(self, assume_yes: bool = False, answers: Optional[dict] = None):
        self.assume_yes = assume_yes
        self.answers = dict(answers or {})
        self.asked: list[str] = []

    def confirm(self, message, default=False) -> bool:
        self.asked.append(message)
        return self.answers.get(message, self.assume_yes)

    def ask(self, message, default=None, validate=None) -> str:
        self.asked.append(message)
        answer = self.answers.get(message, default)
        if answer is None:
            raise LookupError(f"No scripted answer for: {message}")
        return str(answer)

    def choose(self, message, choices, default=0) -> str:
        self.asked.append(message)
        return self.answers.get(message, choices[default][1])
