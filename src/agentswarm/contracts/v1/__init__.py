from __future__ import annotations

from .pane import PaneInfo, PaneSnapshot, PaneState, PaneTarget
from .trigger import ScanResult, TriggerEntry

__all__ = [
    "PaneInfo",
    "PaneSnapshot",
    "PaneState",
    "PaneTarget",
    "ScanResult",
    "TriggerEntry",
]
