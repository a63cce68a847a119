from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .pane import PaneState


class TriggerEntry(BaseModel):
    """A pane awaiting the conductor's attention."""

    target: str
    name: str = ""
    state: PaneState = PaneState.IDLE
    cwd: str = ""

    model_config = ConfigDict(extra="ignore")

    def to_line(self) -> str:
        return "\t".join(_clean(x) for x in (self.target, self.name, self.state.value, self.cwd))

    @classmethod
    def from_line(cls, line: str) -> Optional["TriggerEntry"]:
        parts = (line or "").rstrip("\n").split("\t")
        target = parts[0].strip() if parts else ""
        if not target:
            return None
        return cls(
            target=target,
            name=parts[1] if len(parts) > 1 else "",
            state=PaneState.parse(parts[2] if len(parts) > 2 else ""),
            cwd=parts[3] if len(parts) > 3 else "",
        )


def _clean(value: str) -> str:
    return str(value or "").replace("\t", " ").replace("\n", " ")


class ScanResult(BaseModel):
    """Aggregate output of one scanner tick."""

    idle_count: int = 0
    total_count: int = 0
    actionable: bool = False
    # Confirmed WORKING -> IDLE transitions this tick, in listing order.
    transitioned: List[str] = Field(default_factory=list)
    # Panes whose emitted state entered IDLE/EXITED this tick (conductor excluded).
    newly_actionable: List[TriggerEntry] = Field(default_factory=list)
