from __future__ import annotations

import time
from typing import Optional


def local_stamp(ts: Optional[float] = None) -> str:
    """Human-readable local timestamp used in the action log and reports."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(time.time() if ts is None else ts))


def fmt_elapsed(secs: float) -> str:
    s = int(max(0, secs))
    if s < 60:
        return f"{s}s"
    if s < 3600:
        m, s = divmod(s, 60)
        return f"{m}m{s}s" if s else f"{m}m"
    h, rem = divmod(s, 3600)
    m = rem // 60
    return f"{h}h{m}m" if m else f"{h}h"
