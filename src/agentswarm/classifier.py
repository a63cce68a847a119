"""Pane state classification from screen-scrape heuristics.

The rules are evaluated top to bottom and the first match wins. The order is
part of the contract: an agent that is busy usually still shows an old prompt
in its scrollback, so the interrupt hint has to be checked before the prompt.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .contracts.v1 import PaneSnapshot, PaneState
from .settings import (
    DEFAULT_INTERRUPT_MARKERS,
    DEFAULT_PROMPT_GLYPHS,
    DEFAULT_SHELL_COMMANDS,
    DEFAULT_SHORTCUTS_MARKERS,
    SwarmSettings,
)

Predicate = Callable[[str, str], bool]

# Box-drawing characters some agent UIs draw around their input line.
BOX_CHARS = "│┃║|╭╮╰╯─━═┌┐└┘"


def _prompt_line_re(glyphs: Sequence[str]) -> "re.Pattern[str]":
    alts = "|".join(re.escape(g) for g in glyphs if g)
    # The glyph alone on its line, with only blanks or a box edge around it.
    edge = r"(?:[^\S\n]|[│┃║])*"
    return re.compile("^" + edge + "(?:" + alts + ")" + edge + "$", re.MULTILINE)


def _command_name(cmd: str) -> str:
    # tmux may report "-bash" for login shells or a full path.
    name = (cmd or "").strip().rsplit("/", 1)[-1]
    return name.lstrip("-")


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Predicate
    state: PaneState


class StateClassifier:
    def __init__(
        self,
        *,
        shell_commands: Sequence[str] = DEFAULT_SHELL_COMMANDS,
        interrupt_markers: Sequence[str] = DEFAULT_INTERRUPT_MARKERS,
        shortcuts_markers: Sequence[str] = DEFAULT_SHORTCUTS_MARKERS,
        prompt_glyphs: Sequence[str] = DEFAULT_PROMPT_GLYPHS,
    ) -> None:
        self.shell_commands = frozenset(s.strip() for s in shell_commands if s.strip())
        self.interrupt_markers = tuple(m for m in interrupt_markers if m)
        self.shortcuts_markers = tuple(m for m in shortcuts_markers if m)
        self.prompt_glyphs = tuple(g for g in prompt_glyphs if g)
        self._prompt_re = _prompt_line_re(self.prompt_glyphs)
        self.rules: List[Rule] = [
            Rule("shell-in-foreground", self._is_shell, PaneState.EXITED),
            Rule("interrupt-hint", self._has_interrupt_hint, PaneState.WORKING),
            Rule("idle-prompt", self._has_idle_prompt, PaneState.IDLE),
        ]
        self.default = PaneState.WORKING

    @classmethod
    def from_settings(cls, settings: SwarmSettings) -> "StateClassifier":
        return cls(
            shell_commands=settings.shell_commands,
            interrupt_markers=settings.interrupt_markers,
            shortcuts_markers=settings.shortcuts_markers,
            prompt_glyphs=settings.prompt_glyphs,
        )

    def _is_shell(self, cmd: str, text: str) -> bool:
        return _command_name(cmd) in self.shell_commands

    def _has_interrupt_hint(self, cmd: str, text: str) -> bool:
        return any(m in text for m in self.interrupt_markers)

    def _has_idle_prompt(self, cmd: str, text: str) -> bool:
        if any(m in text for m in self.shortcuts_markers):
            return True
        return bool(self._prompt_re.search(text))

    def match(self, cmd: str, text: str) -> Tuple[PaneState, Optional[str]]:
        """Return (state, name of the rule that decided it or None for the default)."""
        c = cmd or ""
        t = text or ""
        for rule in self.rules:
            if rule.predicate(c, t):
                return rule.state, rule.name
        return self.default, None

    def classify(self, cmd: str, text: str) -> PaneState:
        return self.match(cmd, text)[0]

    def classify_snapshot(self, snap: PaneSnapshot) -> PaneState:
        return self.classify(snap.foreground_command, snap.raw_text)

    def is_bare_prompt(self, line: str) -> bool:
        """True when `line` is nothing but whitespace and one prompt glyph."""
        s = (line or "").strip().strip("│┃║").strip()
        return s in self.prompt_glyphs


_DEFAULT = StateClassifier()


def classify(foreground_command: str, raw_text: str) -> PaneState:
    return _DEFAULT.classify(foreground_command, raw_text)
