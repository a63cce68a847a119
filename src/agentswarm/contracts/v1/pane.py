"""Pane contracts.

A pane is addressed by `session:window.pane`; the same string is what tmux
accepts as a `-t` target, so it is also the key used in every file we write.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PaneState(str, Enum):
    UNKNOWN = "unknown"
    WORKING = "working"
    IDLE = "idle"
    EXITED = "exited"

    @property
    def actionable(self) -> bool:
        return self in (PaneState.IDLE, PaneState.EXITED)

    @classmethod
    def parse(cls, value: object) -> "PaneState":
        s = str(value or "").strip().lower()
        for st in cls:
            if st.value == s:
                return st
        return cls.UNKNOWN


class PaneTarget(BaseModel):
    session: str
    window: int
    pane: int

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.session}:{self.window}.{self.pane}"

    @property
    def window_target(self) -> str:
        return f"{self.session}:{self.window}"

    @classmethod
    def parse(cls, text: str) -> Optional["PaneTarget"]:
        raw = str(text or "").strip()
        session, sep, rest = raw.rpartition(":")
        if not sep or not session:
            return None
        win, dot, pane = rest.partition(".")
        if not dot:
            return None
        try:
            return cls(session=session, window=int(win), pane=int(pane))
        except ValueError:
            return None


class PaneSnapshot(BaseModel):
    """Fresh capture of one pane; never persisted."""

    foreground_command: str = ""
    raw_text: str = ""


class PaneInfo(BaseModel):
    """One row of the control surface's pane listing."""

    target: PaneTarget
    pane_id: str = ""
    window_name: str = ""
    command: str = ""
    path: str = ""
    tty: str = ""
    agent_name: str = ""
    role: str = ""
    state_tag: str = ""
    state_since_tag: str = ""

    model_config = ConfigDict(extra="ignore")

    @property
    def display_name(self) -> str:
        if self.agent_name.strip():
            return self.agent_name.strip()
        base = self.window_name.strip() or str(self.target.window)
        return f"{base}.{self.target.pane}"

    @property
    def is_conductor(self) -> bool:
        return self.role.strip().lower() == "conductor"
