"""Thin wrapper over the tmux CLI.

Every call degrades instead of raising: a vanished session or pane reads as
empty, a failed write reads as False. Callers decide what "empty" means.
"""
from __future__ import annotations

import logging
import os
import subprocess
from typing import List, Optional, Tuple

from .contracts.v1 import PaneInfo, PaneTarget

logger = logging.getLogger("agentswarm.tmux")

# Pane/window user options owned by agentswarm.
OPT_AGENT = "@swarm_agent"
OPT_ROLE = "@swarm_role"
OPT_STATE = "@swarm_state"
OPT_STATE_SINCE = "@swarm_state_since"
OPT_BASE_NAME = "@swarm_base_name"

_SEP = "\t"
_PANE_FORMAT = _SEP.join(
    [
        "#{session_name}",
        "#{window_index}",
        "#{pane_index}",
        "#{pane_id}",
        "#{window_name}",
        "#{pane_current_command}",
        "#{pane_tty}",
        "#{" + OPT_AGENT + "}",
        "#{" + OPT_ROLE + "}",
        "#{" + OPT_STATE + "}",
        "#{" + OPT_STATE_SINCE + "}",
        # Last: the only field likely to contain odd characters.
        "#{pane_current_path}",
    ]
)


def _parse_pane_line(line: str) -> Optional[PaneInfo]:
    parts = line.split(_SEP, 11)
    if len(parts) < 12:
        return None
    try:
        target = PaneTarget(session=parts[0], window=int(parts[1]), pane=int(parts[2]))
    except ValueError:
        return None
    return PaneInfo(
        target=target,
        pane_id=parts[3],
        window_name=parts[4],
        command=parts[5],
        tty=parts[6],
        agent_name=parts[7],
        role=parts[8],
        state_tag=parts[9],
        state_since_tag=parts[10],
        path=parts[11],
    )


class Tmux:
    """The control surface. Tests substitute an object with the same methods."""

    def __init__(self, socket_name: Optional[str] = None, *, timeout_s: float = 3.0) -> None:
        self.socket_name = socket_name if socket_name is not None else (
            os.environ.get("AGENTSWARM_TMUX_SOCKET", "").strip() or None
        )
        self.timeout_s = timeout_s

    def _run(self, args: List[str]) -> Tuple[int, str, str]:
        cmd = ["tmux"]
        if self.socket_name:
            cmd.extend(["-L", self.socket_name])
        cmd.extend(args)
        try:
            p = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
            return int(p.returncode), (p.stdout or ""), (p.stderr or "")
        except subprocess.TimeoutExpired:
            return 124, "", "tmux timeout"
        except FileNotFoundError:
            return 127, "", "tmux not found"
        except Exception as e:
            return 1, "", str(e)

    # -- sessions -----------------------------------------------------------

    def has_session(self, session: str) -> bool:
        code, _, _ = self._run(["has-session", "-t", f"={session}"])
        return code == 0

    def list_sessions(self) -> List[str]:
        code, out, _ = self._run(["list-sessions", "-F", "#{session_name}"])
        if code != 0:
            return []
        return [ln for ln in out.splitlines() if ln.strip()]

    def server_running(self) -> bool:
        return bool(self.list_sessions())

    # -- panes --------------------------------------------------------------

    def list_panes(self, session: Optional[str] = None) -> List[PaneInfo]:
        args = ["list-panes", "-F", _PANE_FORMAT]
        args[1:1] = ["-s", "-t", f"={session}"] if session else ["-a"]
        code, out, err = self._run(args)
        if code != 0:
            logger.debug("list-panes failed: %s", err.strip(), extra={"session": session})
            return []
        panes: List[PaneInfo] = []
        for ln in out.splitlines():
            info = _parse_pane_line(ln)
            if info is not None:
                panes.append(info)
        return panes

    def pane_command(self, target: str) -> str:
        return self._display(target, "#{pane_current_command}")

    def capture(self, target: str, lines: Optional[int] = None) -> str:
        """Visible screen text; with `lines`, only its last non-blank tail."""
        code, out, _ = self._run(["capture-pane", "-p", "-J", "-t", target])
        if code != 0:
            return ""
        rows = [ln.rstrip() for ln in out.splitlines()]
        while rows and not rows[-1]:
            rows.pop()
        if lines:
            rows = rows[-int(lines) :]
        return "\n".join(rows)

    def set_option(self, target: str, name: str, value: str) -> bool:
        code, _, _ = self._run(["set-option", "-p", "-t", target, name, value])
        return code == 0

    def unset_option(self, target: str, name: str) -> bool:
        code, _, _ = self._run(["set-option", "-p", "-u", "-t", target, name])
        return code == 0

    def _display(self, target: str, fmt: str) -> str:
        code, out, _ = self._run(["display-message", "-p", "-t", target, fmt])
        if code != 0:
            return ""
        return out.strip()

    # -- input --------------------------------------------------------------

    def send_keys(self, target: str, *keys: str) -> bool:
        keys = tuple(k for k in keys if k)
        if not keys:
            return True
        code, _, _ = self._run(["send-keys", "-t", target, *keys])
        return code == 0

    def send_literal(self, target: str, text: str) -> bool:
        code, _, _ = self._run(["send-keys", "-t", target, "-l", text])
        return code == 0

    def clear_input(self, target: str) -> bool:
        # readline / agent CLIs treat C-u as "kill to start of line".
        return self.send_keys(target, "C-u")

    # -- clients & windows --------------------------------------------------

    def client_ttys(self, session: str) -> List[str]:
        code, out, _ = self._run(["list-clients", "-t", f"={session}", "-F", "#{client_tty}"])
        if code != 0:
            return []
        return [ln.strip() for ln in out.splitlines() if ln.strip()]

    def active_window(self, session: str) -> Optional[int]:
        raw = self._display(f"={session}", "#{window_index}")
        return int(raw) if raw.isdigit() else None

    def rename_window(self, window_target: str, label: str) -> bool:
        code, _, _ = self._run(["rename-window", "-t", window_target, label])
        return code == 0

    def get_window_option(self, window_target: str, name: str) -> str:
        code, out, _ = self._run(["show-options", "-w", "-q", "-v", "-t", window_target, name])
        if code != 0:
            return ""
        return out.strip()

    def set_window_option(self, window_target: str, name: str, value: str) -> bool:
        code, _, _ = self._run(["set-option", "-w", "-t", window_target, name, value])
        return code == 0

    def select_pane(self, target: str) -> bool:
        code, _, _ = self._run(["select-pane", "-t", target])
        return code == 0


TMUX = Tmux()
