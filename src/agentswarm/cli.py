from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore

from . import __version__, actionlog, conductor
from .contracts.v1 import PaneTarget
from .dispatch import read_pending
from .paths import conductor_lock_path, locks_dir, logs_dir, scope_slug, swarm_home, watch_lock_path
from .report import StatusReportBuilder
from .scanner import Scanner
from .scheduler import ConductorWatcher, SessionWatcher, WatchScheduler
from .settings import SwarmSettings, load_settings, save_settings
from .tmux import TMUX
from .util.obslog import default_level, setup_root_json_logging
from .util.time import local_stamp
from .watch_lock import kill_existing_watch, pid_alive, read_lock_pid

logger = logging.getLogger("agentswarm.cli")


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _spawn_detached(argv: List[str], log_name: str) -> int:
    logs = logs_dir()
    logs.mkdir(parents=True, exist_ok=True)
    log_f = (logs / f"{scope_slug(log_name)}.log").open("a", encoding="utf-8")
    env = os.environ.copy()
    env["AGENTSWARM_HOME"] = str(swarm_home())
    p = subprocess.Popen(
        [sys.executable, "-m", "agentswarm.cli", *argv],
        stdout=log_f,
        stderr=log_f,
        stdin=subprocess.DEVNULL,
        env=env,
        start_new_session=True,
        cwd=str(Path.cwd()),
    )
    return int(p.pid)


def _run_loop(watcher: WatchScheduler) -> int:
    def _signal_handler(signum: int, frame: Any) -> None:
        watcher.request_stop()

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)
    return watcher.run()


def _kill(path: Path, settings: SwarmSettings, label: str) -> int:
    res = kill_existing_watch(path, attempts=settings.kill_wait_attempts, wait_seconds=settings.kill_wait_seconds)
    if res.signaled:
        actionlog.append_action(actionlog.KILLED, f"{label} pid={res.pid} stopped={res.stopped}")
        print(f"swarm: {label} watcher pid={res.pid} {'stopped' if res.stopped else 'signaled (still alive)'}")
    else:
        print(f"swarm: no running {label} watcher")
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.detach:
        pid = _spawn_detached(["--log-level", args.log_level, "watch", args.session], f"watch-{args.session}")
        print(f"swarm: watching {args.session} in background pid={pid}")
        return 0
    if not TMUX.has_session(args.session):
        print(f"swarm: no such tmux session: {args.session}", file=sys.stderr)
        return 1
    return _run_loop(SessionWatcher(TMUX, args.session, settings=settings))


def cmd_stop(args: argparse.Namespace) -> int:
    return _kill(watch_lock_path(args.session), load_settings(), f"session {args.session}")


def cmd_scan(args: argparse.Namespace) -> int:
    settings = load_settings()
    panes = TMUX.list_panes(args.session)
    if not panes:
        print(f"swarm: no panes for session: {args.session}", file=sys.stderr)
        return 1
    found = conductor.find_conductor(panes)
    scanner = Scanner(TMUX, settings=settings, persist_tags=False, bell=False)
    result = scanner.scan(panes, conductor_target=str(found.target) if found else None)
    if args.json:
        _print_json(
            {
                "result": result.model_dump(mode="json"),
                "panes": [
                    {"target": v.target, "name": v.info.display_name, "state": v.state.value, "command": v.info.command}
                    for v in scanner.views
                ],
            }
        )
        return 0
    for v in scanner.views:
        print(f"{v.target:<24} {v.state.value.upper():<8} {v.info.display_name}")
    print(f"idle {result.idle_count}/{result.total_count} actionable={'yes' if result.actionable else 'no'}")
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    settings = load_settings()
    panes = TMUX.list_panes(None)
    scanner = Scanner(TMUX, settings=settings, persist_tags=False, bell=False)
    found = conductor.find_conductor(panes)
    scanner.scan(panes, conductor_target=str(found.target) if found else None)
    path = StatusReportBuilder(settings=settings).write(scanner.views)
    print(str(path))
    return 0


def _lock_status(path: Path) -> Dict[str, Any]:
    pid = read_lock_pid(path)
    return {"lock": str(path), "pid": pid, "alive": bool(pid and pid_alive(pid))}


def cmd_status(args: argparse.Namespace) -> int:
    watchers = [_lock_status(p) for p in sorted(locks_dir().glob("*.lock"))]
    last = conductor.last_trigger_at()
    doc = {
        "home": str(swarm_home()),
        "watchers": watchers,
        "conductor_paused": conductor.is_paused(),
        "pending": [e.model_dump(mode="json") for e in read_pending()],
        "last_trigger_at": last or None,
    }
    if args.json:
        _print_json(doc)
        return 0
    print(f"home: {doc['home']}")
    if not watchers:
        print("watchers: none")
    for w in watchers:
        print(f"  {Path(w['lock']).stem:<28} pid={w['pid'] or '?'} {'alive' if w['alive'] else 'stale'}")
    print(f"conductor: {'paused' if doc['conductor_paused'] else 'active'}")
    print(f"last trigger: {local_stamp(last) if last else 'never'}")
    print(f"pending: {len(doc['pending'])}")
    for e in doc["pending"]:
        print(f"  {e['target']:<24} {str(e['state']).upper():<8} {e['name']}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.init:
        print(str(save_settings(settings)))
        return 0
    print(yaml.safe_dump(settings.to_dict(), allow_unicode=True, sort_keys=False), end="")
    return 0


def cmd_conductor(args: argparse.Namespace) -> int:
    settings = load_settings()
    action = args.action
    if action == "watch":
        if args.detach:
            pid = _spawn_detached(["--log-level", args.log_level, "conductor", "watch"], "conductor")
            print(f"swarm: conductor watcher started in background pid={pid}")
            return 0
        return _run_loop(ConductorWatcher(TMUX, settings=settings))
    if action == "stop":
        return _kill(conductor_lock_path(), settings, "conductor")
    if action == "pause":
        print("swarm: conductor paused" if conductor.pause() else "swarm: already paused")
        return 0
    if action == "resume":
        print("swarm: conductor resumed" if conductor.resume() else "swarm: not paused")
        return 0
    if action in ("mark", "unmark"):
        if not args.target or PaneTarget.parse(args.target) is None:
            print("swarm: expected a pane target like session:window.pane", file=sys.stderr)
            return 2
        ok = conductor.mark_conductor(TMUX, args.target) if action == "mark" else conductor.unmark_conductor(TMUX, args.target)
        if not ok:
            print(f"swarm: could not update pane {args.target}", file=sys.stderr)
            return 1
        print(f"swarm: {args.target} {'is now' if action == 'mark' else 'is no longer'} the conductor")
        return 0
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swarm", description="Monitor agent panes and wake the conductor")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=default_level(), help="DEBUG, INFO, WARNING (default: INFO)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("watch", help="Watch one tmux session")
    p.add_argument("session")
    p.add_argument("--detach", action="store_true", help="Run in the background")
    p.set_defaults(func=cmd_watch)

    p = sub.add_parser("stop", help="Stop the watcher of a session")
    p.add_argument("session")
    p.set_defaults(func=cmd_stop)

    p = sub.add_parser("scan", help="Classify every pane of a session once")
    p.add_argument("session")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser("report", help="Write the status report now")
    p.set_defaults(func=cmd_report)

    p = sub.add_parser("status", help="Show watchers, pause flag and pending triggers")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("config", help="Print effective settings")
    p.add_argument("--init", action="store_true", help="Write settings.yaml with the current values")
    p.set_defaults(func=cmd_config)

    p = sub.add_parser("conductor", help="Conductor watcher and controls")
    p.add_argument("action", choices=["watch", "stop", "pause", "resume", "mark", "unmark"])
    p.add_argument("target", nargs="?", default="", help="Pane target for mark/unmark")
    p.add_argument("--detach", action="store_true", help="Run the watcher in the background")
    p.set_defaults(func=cmd_conductor)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_root_json_logging(component=f"swarm-{args.cmd}", level=args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
