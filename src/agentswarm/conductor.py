"""Conductor gating.

The conductor is an agent pane tagged `@swarm_role=conductor`. Nothing is
typed into it unless it is idle and outside the rate limit. Its input line
must also be provably empty. That last check is a hard gate: when it cannot
be confirmed we defer and never retry into the pane.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from . import actionlog
from .classifier import BOX_CHARS, StateClassifier
from .contracts.v1 import PaneInfo, PaneState
from .paths import last_trigger_path, pause_flag_path
from .settings import SwarmSettings
from .tmux import OPT_ROLE
from .util.fs import atomic_write_text, read_float, remove_file

logger = logging.getLogger("agentswarm.conductor")

CONDUCTOR_ROLE = "conductor"


def should_trigger(
    has_actionable: bool,
    last_trigger_at: float,
    min_interval: float,
    *,
    now: Optional[float] = None,
) -> bool:
    if not has_actionable:
        return False
    t = time.time() if now is None else now
    return (t - float(last_trigger_at or 0.0)) >= float(min_interval)


# -- durable conductor record ------------------------------------------------


def is_paused() -> bool:
    return pause_flag_path().exists()


def pause() -> bool:
    p = pause_flag_path()
    if p.exists():
        return False
    atomic_write_text(p, f"{int(time.time())}\n")
    actionlog.append_action(actionlog.PAUSED, "conductor triggers paused")
    return True


def resume() -> bool:
    if not remove_file(pause_flag_path()):
        return False
    actionlog.append_action(actionlog.RESUMED, "conductor triggers resumed")
    return True


def last_trigger_at() -> float:
    return read_float(last_trigger_path()) or 0.0


def record_trigger(ts: float) -> float:
    """Persist the trigger time; never moves backwards."""
    value = max(float(ts), last_trigger_at())
    atomic_write_text(last_trigger_path(), f"{value:.3f}\n")
    return value


def find_conductor(panes: Sequence[PaneInfo]) -> Optional[PaneInfo]:
    for p in panes:
        if p.is_conductor:
            return p
    return None


def mark_conductor(surface: Any, target: str) -> bool:
    return bool(surface.set_option(target, OPT_ROLE, CONDUCTOR_ROLE))


def unmark_conductor(surface: Any, target: str) -> bool:
    return bool(surface.unset_option(target, OPT_ROLE))


# -- gate ----------------------------------------------------------------------


@dataclass(frozen=True)
class GateDecision:
    deliver: bool
    reason: str = ""


def _is_decoration(line: str, shortcuts_markers: Sequence[str]) -> bool:
    s = line.strip()
    if not s:
        return True
    if all(ch in BOX_CHARS or ch.isspace() for ch in s):
        return True
    return any(m in s for m in shortcuts_markers)


class ConductorGate:
    def __init__(
        self,
        surface: Any,
        *,
        settings: Optional[SwarmSettings] = None,
        classifier: Optional[StateClassifier] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.surface = surface
        self.settings = settings or SwarmSettings()
        self.classifier = classifier or StateClassifier.from_settings(self.settings)
        self.clock = clock

    def last_input_line(self, target: str) -> Optional[str]:
        n = self.settings.prompt_check_lines
        lines = (self.surface.capture(target, lines=n) or "").rstrip().splitlines()[-n:]
        for line in reversed(lines):
            if not _is_decoration(line, self.settings.shortcuts_markers):
                return line
        return None

    def is_prompt_empty(self, target: str) -> bool:
        line = self.last_input_line(target)
        if line is None:
            return False
        return self.classifier.is_bare_prompt(line)

    def conductor_state(self, conductor: PaneInfo) -> PaneState:
        target = str(conductor.target)
        cmd = conductor.command or self.surface.pane_command(target)
        return self.classifier.classify(cmd, self.surface.capture(target))

    def evaluate(self, has_actionable: bool, conductor: Optional[PaneInfo]) -> GateDecision:
        """Everything except the prompt check, which runs right before typing."""
        if not has_actionable:
            return GateDecision(False, "nothing-actionable")
        if is_paused():
            return GateDecision(False, "paused")
        if conductor is None:
            return GateDecision(False, "no-conductor")
        if not should_trigger(
            has_actionable,
            last_trigger_at(),
            self.settings.conductor_min_interval_seconds,
            now=self.clock(),
        ):
            return GateDecision(False, "rate-limited")
        state = self.conductor_state(conductor)
        if state == PaneState.EXITED:
            return GateDecision(False, "conductor-exited")
        if state != PaneState.IDLE:
            return GateDecision(False, "conductor-busy")
        return GateDecision(True, "")
