"""One polling tick over a set of panes."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from .classifier import StateClassifier
from .contracts.v1 import PaneInfo, PaneSnapshot, PaneState, ScanResult, TriggerEntry
from .display import ring_bell
from .settings import SwarmSettings
from .tmux import OPT_STATE, OPT_STATE_SINCE
from .tracker import TransitionTracker

logger = logging.getLogger("agentswarm.scanner")


@dataclass
class PaneView:
    """A pane as seen on the latest tick; feeds the status report."""

    info: PaneInfo
    state: PaneState
    state_since: float
    text: str = ""

    @property
    def target(self) -> str:
        return str(self.info.target)


def _parse_since(raw: str) -> Optional[float]:
    try:
        v = float(str(raw or "").strip())
    except ValueError:
        return None
    return v if v > 0 else None


class Scanner:
    def __init__(
        self,
        surface: Any,
        *,
        settings: Optional[SwarmSettings] = None,
        tracker: Optional[TransitionTracker] = None,
        classifier: Optional[StateClassifier] = None,
        clock: Callable[[], float] = time.time,
        persist_tags: bool = True,
        bell: bool = True,
    ) -> None:
        self.surface = surface
        self.settings = settings or SwarmSettings()
        self.tracker = tracker or TransitionTracker(confirm_ticks=self.settings.idle_confirm_ticks)
        self.classifier = classifier or StateClassifier.from_settings(self.settings)
        self.clock = clock
        self.persist_tags = persist_tags
        self.bell = bell and self.settings.bell
        self.views: List[PaneView] = []

    def snapshot(self, info: PaneInfo) -> PaneSnapshot:
        target = str(info.target)
        cmd = info.command or self.surface.pane_command(target)
        return PaneSnapshot(foreground_command=cmd, raw_text=self.surface.capture(target))

    def scan(self, panes: Sequence[PaneInfo], *, conductor_target: Optional[str] = None) -> ScanResult:
        now = self.clock()
        result = ScanResult()
        views: List[PaneView] = []
        seen = set()
        pane_ttys = [p.tty for p in panes if p.tty]

        for info in panes:
            target = str(info.target)
            if target in seen:
                continue
            seen.add(target)

            snap = self.snapshot(info)
            raw = self.classifier.classify_snapshot(snap)
            fresh = target not in self.tracker.records
            obs = self.tracker.observe(target, raw, now)
            rec = obs.record

            # A restarted watcher keeps the durable state_since if the state agrees.
            restored = False
            if fresh and info.state_tag == obs.emitted.value:
                since = _parse_since(info.state_since_tag)
                if since is not None:
                    rec.state_since = since
                    restored = True

            if self.persist_tags:
                if info.state_tag != obs.emitted.value:
                    self.surface.set_option(target, OPT_STATE, obs.emitted.value)
                if obs.transition is not None and not restored:
                    self.surface.set_option(target, OPT_STATE_SINCE, str(int(rec.state_since)))

            is_conductor = info.is_conductor or (conductor_target is not None and target == conductor_target)
            tr = obs.transition
            if tr is not None:
                logger.info(
                    "%s: %s -> %s",
                    info.display_name,
                    tr.previous.value,
                    tr.state.value,
                    extra={"pane": target, "state": tr.state.value},
                )
                if tr.confirmed_idle:
                    result.transitioned.append(target)
                    if self.bell:
                        ring_bell(self.surface, info.target.session, exclude_ttys=pane_ttys)
                if tr.became_actionable and not is_conductor:
                    result.newly_actionable.append(
                        TriggerEntry(target=target, name=info.display_name, state=tr.state, cwd=info.path)
                    )

            result.total_count += 1
            if obs.emitted == PaneState.IDLE:
                result.idle_count += 1
            if obs.emitted.actionable and not is_conductor:
                result.actionable = True

            views.append(PaneView(info=info, state=obs.emitted, state_since=rec.state_since, text=snap.raw_text))

        self.tracker.forget_missing(seen)
        self.views = views
        return result
