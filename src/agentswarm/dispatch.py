"""Trigger delivery to the conductor.

Durable state first, keystrokes last. Every file the conductor reads is on
disk before anything is typed, so a crash mid-delivery loses nothing.
The pending file is only removed after a direct delivery went through.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import actionlog
from .conductor import ConductorGate, GateDecision, record_trigger
from .contracts.v1 import PaneInfo, TriggerEntry
from .paths import pending_path, status_report_path, trigger_summary_path
from .report import StatusReportBuilder, tail_lines
from .scanner import PaneView
from .settings import SwarmSettings
from .util.fs import atomic_write_text, read_text, remove_file
from .util.time import local_stamp

logger = logging.getLogger("agentswarm.dispatch")


# -- pending file --------------------------------------------------------------


def read_pending() -> List[TriggerEntry]:
    out: List[TriggerEntry] = []
    seen = set()
    for line in read_text(pending_path()).splitlines():
        entry = TriggerEntry.from_line(line)
        if entry is None or entry.target in seen:
            continue
        seen.add(entry.target)
        out.append(entry)
    return out


def merge_pending(batch: Sequence[TriggerEntry]) -> List[TriggerEntry]:
    """Fold `batch` into the single pending file.

    Returns the entries that were not pending yet or whose state changed.
    """
    current = read_pending()
    index = {e.target: i for i, e in enumerate(current)}
    added: List[TriggerEntry] = []
    for entry in batch:
        i = index.get(entry.target)
        if i is None:
            index[entry.target] = len(current)
            current.append(entry)
            added.append(entry)
        else:
            if current[i].state != entry.state:
                added.append(entry)
            current[i] = entry
    if batch:
        atomic_write_text(pending_path(), "".join(e.to_line() + "\n" for e in current))
    return added


def clear_pending() -> bool:
    return remove_file(pending_path())


# -- dispatcher ----------------------------------------------------------------


@dataclass
class DispatchOutcome:
    delivered: bool
    reason: str = ""
    entries: List[TriggerEntry] = field(default_factory=list)


def _excerpt(text: str, n: int, classifier_is_prompt: Callable[[str], bool]) -> List[str]:
    lines = [ln.strip() for ln in tail_lines(text, 40)]
    useful = [ln for ln in lines if ln and not classifier_is_prompt(ln) and not set(ln) <= set("─━═-│╭╮╰╯ ")]
    return useful[-n:]


class TriggerDispatcher:
    def __init__(
        self,
        surface: Any,
        *,
        gate: ConductorGate,
        settings: Optional[SwarmSettings] = None,
        report: Optional[StatusReportBuilder] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.surface = surface
        self.gate = gate
        self.settings = settings or gate.settings
        self.clock = clock
        self.report = report or StatusReportBuilder(settings=self.settings, clock=clock)
        self._last_deferral: Optional[str] = None

    def render_summary(self, entries: Sequence[TriggerEntry], views: Sequence[PaneView]) -> str:
        by_target: Dict[str, PaneView] = {v.target: v for v in views}
        out = ["# Agent Swarm Trigger", "", f"Generated: {local_stamp(self.clock())}", ""]
        out.append(f"{len(entries)} agent pane(s) need attention:")
        out.append("")
        for e in entries:
            v = by_target.get(e.target)
            state = (v.state if v is not None else e.state).value.upper()
            out.append(f"- {e.name or e.target} `{e.target}`: {state} in `{e.cwd or '?'}`")
            if v is not None:
                for ln in _excerpt(v.text, self.settings.summary_tail_lines, self.gate.classifier.is_bare_prompt):
                    out.append(f"  > {ln}")
        out.append("")
        out.append(f"Full status: {status_report_path()}")
        out.append("")
        return "\n".join(out)

    def instruction(self, count: int) -> str:
        return (
            f"[swarm] {count} agent pane(s) need attention. "
            f"Read {trigger_summary_path()} and act on them."
        )

    def write_documents(self, entries: Sequence[TriggerEntry], views: Sequence[PaneView]) -> None:
        self.report.write(views)
        atomic_write_text(trigger_summary_path(), self.render_summary(entries, views))

    def dispatch(
        self,
        batch: Sequence[TriggerEntry],
        views: Sequence[PaneView],
        *,
        conductor: Optional[PaneInfo],
        decision: GateDecision,
    ) -> DispatchOutcome:
        added = merge_pending(batch)
        entries = read_pending()
        if not entries:
            return DispatchOutcome(delivered=False, reason="nothing-actionable")
        self.write_documents(entries, views)

        reason = decision.reason
        if decision.deliver and conductor is not None:
            target = str(conductor.target)
            if not self.gate.is_prompt_empty(target):
                reason = "prompt-not-empty"
            elif self._inject(target, len(entries)):
                clear_pending()
                record_trigger(self.clock())
                self._last_deferral = None
                names = ", ".join(e.name or e.target for e in entries)
                actionlog.append_action(
                    actionlog.TRIGGERED, f"{len(entries)} pane(s) -> {target}: {names}", ts=self.clock()
                )
                logger.info("triggered conductor for %d pane(s)", len(entries), extra={"pane": target})
                return DispatchOutcome(delivered=True, entries=list(entries))
            else:
                reason = "inject-failed"

        if added or reason != self._last_deferral:
            names = ", ".join(e.name or e.target for e in (added or entries))
            actionlog.append_action(actionlog.PENDING, f"{len(entries)} pane(s) ({reason}): {names}", ts=self.clock())
            logger.info("deferred %d pane(s): %s", len(entries), reason, extra={"reason": reason})
        self._last_deferral = reason
        return DispatchOutcome(delivered=False, reason=reason, entries=list(entries))

    def _inject(self, target: str, count: int) -> bool:
        if not self.surface.clear_input(target):
            return False
        if self.surface.send_literal(target, self.instruction(count)) and self.surface.send_keys(target, "Enter"):
            return True
        # Our text must never stay on the conductor's input line.
        self.surface.clear_input(target)
        logger.warning("injection into %s failed; input line cleared", target, extra={"pane": target})
        return False
