"""What the user sees change in tmux as pane states move.

Escape sequences go to attached *client* terminals only. A monitored pane's
own tty is never written to, since that would land in the agent's input.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .contracts.v1 import PaneInfo, PaneState, PaneTarget
from .tmux import OPT_BASE_NAME

logger = logging.getLogger("agentswarm.display")

BEL = "\a"


def title_sequence(title: str) -> str:
    clean = "".join(ch for ch in str(title or "") if ch.isprintable())
    return f"\033]2;{clean}\007"


def _write_tty(path: str, data: str) -> bool:
    try:
        with open(path, "w", encoding="utf-8", errors="replace") as f:
            f.write(data)
            f.flush()
        return True
    except OSError as e:
        logger.debug("client tty write failed: %s", e, extra={"pane": path})
        return False


def client_targets(surface: Any, session: str, exclude_ttys: Iterable[str] = ()) -> List[str]:
    excluded: Set[str] = {t for t in exclude_ttys if t}
    return [t for t in surface.client_ttys(session) if t and t not in excluded]


def write_to_clients(surface: Any, session: str, data: str, *, exclude_ttys: Iterable[str] = ()) -> int:
    n = 0
    for tty in client_targets(surface, session, exclude_ttys):
        if _write_tty(tty, data):
            n += 1
    return n


def ring_bell(surface: Any, session: str, *, exclude_ttys: Iterable[str] = ()) -> int:
    return write_to_clients(surface, session, BEL, exclude_ttys=exclude_ttys)


def set_client_title(surface: Any, session: str, title: str, *, exclude_ttys: Iterable[str] = ()) -> int:
    return write_to_clients(surface, session, title_sequence(title), exclude_ttys=exclude_ttys)


def summary_title(session: str, idle: int, total: int) -> str:
    return f"swarm {session}: {idle}/{total} idle"


def window_counts(panes: Sequence[Tuple[PaneInfo, PaneState]]) -> Dict[str, Tuple[int, int]]:
    """{window_target: (idle, total)} in listing order."""
    out: Dict[str, Tuple[int, int]] = {}
    for info, state in panes:
        key = info.target.window_target
        idle, total = out.get(key, (0, 0))
        out[key] = (idle + (1 if state == PaneState.IDLE else 0), total + 1)
    return out


def update_window_labels(
    surface: Any,
    panes: Sequence[Tuple[PaneInfo, PaneState]],
    base_names: Dict[str, str],
) -> Dict[str, str]:
    """Rename each window to `<base> [idle/total]`; returns the applied labels.

    `base_names` caches the original window names between ticks; the base is
    also stored in a window option so a restarted watcher does not stack
    counters onto an already-labelled name.
    """
    names = {info.target.window_target: info.window_name for info, _ in panes}
    labels: Dict[str, str] = {}
    for window_target, (idle, total) in window_counts(panes).items():
        base = base_names.get(window_target)
        if base is None:
            base = surface.get_window_option(window_target, OPT_BASE_NAME)
            if not base:
                base = names.get(window_target, "")
                surface.set_window_option(window_target, OPT_BASE_NAME, base)
            base_names[window_target] = base
        label = f"{base} [{idle}/{total}]"
        if names.get(window_target) != label:
            surface.rename_window(window_target, label)
        labels[window_target] = label
    return labels


def focus_single_transition(surface: Any, session: str, transitioned: Sequence[str]) -> Optional[str]:
    """Focus the one pane that just went idle, if it is in the active window.

    Zero or several simultaneous transitions leave focus alone.
    """
    if len(transitioned) != 1:
        return None
    target = PaneTarget.parse(transitioned[0])
    if target is None or target.session != session:
        return None
    active = surface.active_window(session)
    if active is None or active != target.window:
        return None
    if surface.select_pane(str(target)):
        return str(target)
    return None
