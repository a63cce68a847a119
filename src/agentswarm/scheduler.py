"""Watch loops.

Each loop moves ACQUIRING -> RUNNING -> STOPPED. Only the process holding the
scope's lock file runs; a second invocation exits without touching anything.
Stop requests are cooperative and noticed at the top of the next iteration.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from . import actionlog
from .conductor import ConductorGate, find_conductor
from .contracts.v1 import PaneInfo, ScanResult
from .dispatch import DispatchOutcome, TriggerDispatcher, read_pending
from .display import focus_single_transition, set_client_title, summary_title, update_window_labels
from .paths import conductor_lock_path, watch_lock_path
from .report import StatusReportBuilder
from .scanner import Scanner
from .settings import SwarmSettings
from .watch_lock import WatchLock

logger = logging.getLogger("agentswarm.scheduler")

ACQUIRING = "acquiring"
RUNNING = "running"
STOPPED = "stopped"


class WatchScheduler:
    scope = "watch"

    def __init__(
        self,
        surface: Any,
        lock: WatchLock,
        *,
        interval: float,
        settings: Optional[SwarmSettings] = None,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.surface = surface
        self.lock = lock
        self.interval = float(interval)
        self.settings = settings or SwarmSettings()
        self.clock = clock
        self._stop = threading.Event()
        self.sleep = sleep or self._stop.wait
        self.phase = STOPPED
        self.ticks = 0
        self.stop_reason = ""

    def scope_exists(self) -> bool:
        raise NotImplementedError

    def tick(self) -> ScanResult:
        raise NotImplementedError

    def request_stop(self) -> None:
        self._stop.set()

    def run(self, *, max_ticks: Optional[int] = None) -> int:
        self.phase = ACQUIRING
        if not self.lock.acquire():
            logger.info("%s already watched by another process", self.scope, extra={"scope": self.scope})
            self.phase = STOPPED
            self.stop_reason = "lock-held"
            return 0

        self.phase = RUNNING
        actionlog.append_action(actionlog.WATCH_START, f"{self.scope} pid={self.lock.pid}", ts=self.clock())
        logger.info("watching %s", self.scope, extra={"scope": self.scope, "pid": self.lock.pid})
        try:
            while True:
                if self._stop.is_set():
                    self.stop_reason = "stop-requested"
                    break
                if not self.lock.owned():
                    self.stop_reason = "lock-lost"
                    break
                if not self.scope_exists():
                    self.stop_reason = "scope-gone"
                    break
                try:
                    self.tick()
                except Exception:
                    logger.exception("tick failed", extra={"scope": self.scope})
                self.ticks += 1
                if max_ticks is not None and self.ticks >= max_ticks:
                    self.stop_reason = "max-ticks"
                    break
                self.sleep(self.interval)
        finally:
            self.phase = STOPPED
            released = self.lock.release()
            if self.stop_reason != "lock-lost":
                actionlog.append_action(
                    actionlog.WATCH_STOP, f"{self.scope} ({self.stop_reason or 'error'})", ts=self.clock()
                )
            logger.info(
                "stopped watching %s: %s (lock released=%s)",
                self.scope,
                self.stop_reason,
                released,
                extra={"scope": self.scope},
            )
        return 0


class SessionWatcher(WatchScheduler):
    """Per-session loop that also keeps the window labels and client title current."""

    def __init__(
        self,
        surface: Any,
        session: str,
        *,
        settings: Optional[SwarmSettings] = None,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Any]] = None,
        lock: Optional[WatchLock] = None,
    ) -> None:
        settings = settings or SwarmSettings()
        super().__init__(
            surface,
            lock or WatchLock(watch_lock_path(session)),
            interval=settings.watch_interval_seconds,
            settings=settings,
            clock=clock,
            sleep=sleep,
        )
        self.session = session
        self.scope = f"session {session}"
        self.scanner = Scanner(surface, settings=settings, clock=clock)
        self.base_names: Dict[str, str] = {}
        self.focused: List[str] = []
        self._last_title = ""

    def scope_exists(self) -> bool:
        return bool(self.surface.has_session(self.session))

    def tick(self) -> ScanResult:
        panes = self.surface.list_panes(self.session)
        conductor = find_conductor(panes)
        result = self.scanner.scan(panes, conductor_target=str(conductor.target) if conductor else None)
        self.update_display(panes, result)
        return result

    def update_display(self, panes: List[PaneInfo], result: ScanResult) -> None:
        s = self.settings
        pane_ttys = [p.tty for p in panes]
        if s.window_labels and self.scanner.views:
            update_window_labels(self.surface, [(v.info, v.state) for v in self.scanner.views], self.base_names)
        title = summary_title(self.session, result.idle_count, result.total_count)
        if title != self._last_title:
            set_client_title(self.surface, self.session, title, exclude_ttys=pane_ttys)
            self._last_title = title
        if s.auto_focus:
            focused = focus_single_transition(self.surface, self.session, result.transitioned)
            if focused:
                self.focused.append(focused)


class ConductorWatcher(WatchScheduler):
    """Cross-session loop that wakes the conductor for actionable panes."""

    scope = "conductor"

    def __init__(
        self,
        surface: Any,
        *,
        settings: Optional[SwarmSettings] = None,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Any]] = None,
        lock: Optional[WatchLock] = None,
    ) -> None:
        settings = settings or SwarmSettings()
        super().__init__(
            surface,
            lock or WatchLock(conductor_lock_path()),
            interval=settings.conductor_interval_seconds,
            settings=settings,
            clock=clock,
            sleep=sleep,
        )
        # Session watchers own the pane tags and the bell.
        self.scanner = Scanner(surface, settings=settings, clock=clock, persist_tags=False, bell=False)
        self.gate = ConductorGate(surface, settings=settings, classifier=self.scanner.classifier, clock=clock)
        self.dispatcher = TriggerDispatcher(
            surface,
            gate=self.gate,
            settings=settings,
            report=StatusReportBuilder(settings=settings, clock=clock),
            clock=clock,
        )
        self.last_outcome: Optional[DispatchOutcome] = None

    def scope_exists(self) -> bool:
        return bool(self.surface.server_running())

    def monitored(self, panes: List[PaneInfo]) -> List[PaneInfo]:
        tagged = [p for p in panes if p.agent_name.strip() or p.is_conductor]
        return tagged if any(p.agent_name.strip() for p in tagged) else panes

    def tick(self) -> ScanResult:
        panes = self.surface.list_panes(None)
        conductor = find_conductor(panes)
        result = self.scanner.scan(
            self.monitored(panes),
            conductor_target=str(conductor.target) if conductor else None,
        )
        has_actionable = bool(result.newly_actionable) or bool(read_pending())
        if not has_actionable:
            self.dispatcher.report.write(self.scanner.views)
            return result
        decision = self.gate.evaluate(has_actionable, conductor)
        self.last_outcome = self.dispatcher.dispatch(
            result.newly_actionable,
            self.scanner.views,
            conductor=conductor,
            decision=decision,
        )
        return result
