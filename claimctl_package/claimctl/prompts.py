"""
Terminal prompts.

The rest of claimctl only talks to the :class:`Prompter` interface, so the
interactive flows run unchanged against a scripted prompter in tests.
"""

import getpass
from typing import Callable, List, Optional, Sequence, Tuple

Option = Tuple[str, str]
Validator = Callable[[str], Optional[str]]


class PromptAborted(Exception):
    """Raised when the user ends input (EOF) while a prompt is open."""
    pass


class Prompter:
    """Prompt capability used by the interactive flows."""

    def select(self, title: str, options: Sequence[Option], description: str = "") -> str:
        raise NotImplementedError

    def multi_select(self, title: str, options: Sequence[Option], description: str = "") -> List[str]:
        raise NotImplementedError

    def text(self, title: str, default: str = "", description: str = "", validate: Optional[Validator] = None) -> str:
        raise NotImplementedError

    def masked(self, title: str, description: str = "") -> str:
        raise NotImplementedError

    def confirm(self, title: str, default: bool = True) -> bool:
        raise NotImplementedError


class TerminalPrompter(Prompter):
    """Numbered-menu prompts on stdin/stdout."""

    def __init__(self, input_func=input, secret_func=getpass.getpass, output=print):
        self._input = input_func
        self._secret = secret_func
        self._print = output

    def _read(self, prompt: str) -> str:
        try:
            return self._input(prompt)
        except EOFError as e:
            raise PromptAborted("input closed") from e

    def _header(self, title: str, description: str) -> None:
        self._print(f"\n{title}")
        if description:
            self._print(f"  {description}")

    def _show_options(self, options: Sequence[Option]) -> None:
        for number, (label, _value) in enumerate(options, 1):
            self._print(f"  {number}) {label}")

    def _pick(self, raw: str, options: Sequence[Option]) -> Optional[str]:
        raw = raw.strip()
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            return options[int(raw) - 1][1]
        for label, value in options:
            if raw and raw in (label, value):
                return value
        return None

    def select(self, title, options, description=""):
        self._header(title, description)
        self._show_options(options)
        while True:
            choice = self._pick(self._read("> "), options)
            if choice is not None:
                return choice
            self._print(f"  Enter a number between 1 and {len(options)}")

    def multi_select(self, title, options, description=""):
        self._header(title, description or "Comma-separated numbers")
        self._show_options(options)
        while True:
            raw = self._read("> ")
            picked = []
            for part in raw.split(","):
                if not part.strip():
                    continue
                choice = self._pick(part, options)
                if choice is None:
                    picked = None
                    break
                if choice not in picked:
                    picked.append(choice)
            if picked is None:
                self._print(f"  Enter numbers between 1 and {len(options)}")
            elif not picked:
                self._print("  select at least one template")
            else:
                return picked

    def text(self, title, default="", description="", validate=None):
        self._header(title, description)
        prompt = f"[{default}] > " if default else "> "
        while True:
            value = self._read(prompt)
            if not value and default:
                value = default
            error = validate(value) if validate else None
            if error is None:
                return value
            self._print(f"  {error}")

    def masked(self, title, description=""):
        self._header(title, description)
        try:
            return self._secret("> ")
        except EOFError as e:
            raise PromptAborted("input closed") from e

    def confirm(self, title, default=True):
        hint = "Y/n" if default else "y/N"
        while True:
            raw = self._read(f"{title} [{hint}] ").strip().lower()
            if not raw:
                return default
            if raw in ("y", "yes"):
                return True
            if raw in ("n", "no"):
                return False
