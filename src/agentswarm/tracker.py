from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .contracts.v1 import PaneState
from .settings import IDLE_CONFIRM_TICKS


@dataclass
class PaneRecord:
    target: str
    state: PaneState = PaneState.UNKNOWN
    state_since: float = 0.0
    idle_confirm_count: int = 0
    last_reported_state: Optional[PaneState] = None


@dataclass(frozen=True)
class Transition:
    target: str
    previous: PaneState
    state: PaneState
    at: float

    @property
    def confirmed_idle(self) -> bool:
        return self.previous == PaneState.WORKING and self.state == PaneState.IDLE

    @property
    def became_actionable(self) -> bool:
        if not self.state.actionable:
            return False
        # An idle agent that then exits is a new event of its own.
        return not self.previous.actionable or self.state == PaneState.EXITED


@dataclass
class Observation:
    """What the tracker decided for one pane on one tick."""

    record: PaneRecord
    raw: PaneState
    emitted: PaneState
    transition: Optional[Transition] = None


class TransitionTracker:
    """Per-pane hysteresis over raw classifications.

    Records live only as long as the tracker (one watch loop). WORKING -> IDLE
    needs `confirm_ticks` consecutive raw-IDLE observations; every other
    change is applied on first sight.
    """

    def __init__(self, *, confirm_ticks: int = IDLE_CONFIRM_TICKS) -> None:
        self.confirm_ticks = max(1, int(confirm_ticks))
        self.records: Dict[str, PaneRecord] = {}

    def record(self, target: str) -> PaneRecord:
        rec = self.records.get(target)
        if rec is None:
            rec = PaneRecord(target=target)
            self.records[target] = rec
        return rec

    def observe(self, target: str, raw: PaneState, now: float) -> Observation:
        rec = self.record(target)
        previous = rec.state

        if raw == PaneState.IDLE and previous == PaneState.WORKING:
            rec.idle_confirm_count += 1
            emitted = PaneState.IDLE if rec.idle_confirm_count >= self.confirm_ticks else PaneState.WORKING
        else:
            rec.idle_confirm_count = 0
            emitted = raw

        if emitted == PaneState.IDLE:
            rec.idle_confirm_count = 0

        transition: Optional[Transition] = None
        if emitted != previous:
            rec.state = emitted
            rec.state_since = now
            transition = Transition(target=target, previous=previous, state=emitted, at=now)
        rec.last_reported_state = emitted
        return Observation(record=rec, raw=raw, emitted=emitted, transition=transition)

    def forget_missing(self, live_targets: Iterable[str]) -> List[str]:
        """Drop records for panes that no longer exist; returns dropped targets."""
        live = set(live_targets)
        gone = [t for t in self.records if t not in live]
        for t in gone:
            del self.records[t]
        return gone
