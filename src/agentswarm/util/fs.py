from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional


def atomic_write_text(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(text)
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.unlink(tmp)
        except Exception:
            pass


def create_exclusive(path: Path, text: str) -> bool:
    """Create `path` with `text` only if it does not exist yet.

    Returns False when another writer got there first. Never overwrites.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return False
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    return True


def read_text(path: Path, *, default: str = "") -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except Exception:
        return default


def read_float(path: Path) -> Optional[float]:
    raw = read_text(path).strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def remove_file(path: Path) -> bool:
    """Unlink `path`; True if a file was removed."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
