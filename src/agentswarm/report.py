"""Status report consumed by the conductor.

The conductor finds things by heading text, so the headings below are a
stable contract. Order of sections may be relied on by humans, not by tools.
"""
from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import actionlog
from .contracts.v1 import PaneState
from .paths import status_report_path
from .scanner import PaneView
from .settings import SwarmSettings
from .util.fs import atomic_write_text
from .util.time import fmt_elapsed, local_stamp

HEADING_TITLE = "# Agent Swarm Status"
HEADING_ATTENTION = "## Needs Attention"
HEADING_PANES = "## All Panes"
HEADING_ACTIONS = "## Recent Actions"


def tail_lines(text: str, n: int) -> List[str]:
    lines = [ln.rstrip() for ln in (text or "").rstrip().splitlines()]
    while lines and not lines[-1].strip():
        lines.pop()
    return lines[-n:] if n > 0 else []


def keyword_lines(text: str, keywords: Sequence[str]) -> List[str]:
    words = [k for k in keywords if k]
    if not words:
        return []
    rx = re.compile("|".join(re.escape(k) for k in words), re.IGNORECASE)
    out: List[str] = []
    for ln in (text or "").splitlines():
        s = ln.strip()
        if s and rx.search(s) and s not in out:
            out.append(s)
    return out


def _md_cell(value: str) -> str:
    return str(value or "").replace("|", "\\|").replace("\n", " ")


class StatusReportBuilder:
    def __init__(
        self,
        *,
        settings: Optional[SwarmSettings] = None,
        clock: Callable[[], float] = time.time,
        log_path: Optional[Path] = None,
    ) -> None:
        self.settings = settings or SwarmSettings()
        self.clock = clock
        self.log_path = log_path

    def render(self, views: Sequence[PaneView]) -> str:
        now = self.clock()
        s = self.settings
        out: List[str] = [HEADING_TITLE, "", f"Generated: {local_stamp(now)}", ""]

        out.append(HEADING_ATTENTION)
        out.append("")
        attention = [v for v in views if v.state != PaneState.WORKING]
        if not attention:
            out.append("_All agents are working._")
            out.append("")
        for v in attention:
            elapsed = fmt_elapsed(now - v.state_since) if v.state_since else "?"
            role = " (conductor)" if v.info.is_conductor else ""
            out.append(f"### {v.info.display_name}{role} `{v.target}`: {v.state.value.upper()} for {elapsed}")
            out.append("")
            out.append(f"- Directory: `{v.info.path or '?'}`")
            out.append(f"- Command: `{v.info.command or '?'}`")
            tail = tail_lines(v.text, s.report_tail_lines)
            out.append(f"- Last {len(tail)} lines:")
            out.append("")
            out.append("```")
            out.extend(tail)
            out.append("```")
            flagged = keyword_lines(v.text, s.error_keywords)
            if flagged:
                out.append("")
                out.append("- Errors / warnings:")
                out.extend(f"  - {ln}" for ln in flagged)
            out.append("")

        out.append(HEADING_PANES)
        out.append("")
        out.append("| Target | Name | State | Since |")
        out.append("|---|---|---|---|")
        for v in views:
            since = fmt_elapsed(now - v.state_since) if v.state_since else "-"
            out.append(f"| `{v.target}` | {_md_cell(v.info.display_name)} | {v.state.value.upper()} | {since} |")
        out.append("")

        out.append(HEADING_ACTIONS)
        out.append("")
        recent = actionlog.tail_actions(s.report_log_lines, path=self.log_path)
        if recent:
            out.append("```")
            out.extend(recent)
            out.append("```")
        else:
            out.append("_No actions recorded yet._")
        out.append("")
        return "\n".join(out)

    def write(self, views: Sequence[PaneView], path: Optional[Path] = None) -> Path:
        p = path or status_report_path()
        atomic_write_text(p, self.render(views))
        return p
