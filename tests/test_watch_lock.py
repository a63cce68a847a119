import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock


class TestWatchLock(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.path = Path(self._td.name) / "locks" / "watch-s.lock"

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_acquire_is_exclusive_between_processes(self) -> None:
        from agentswarm.watch_lock import WatchLock

        mine = WatchLock(self.path)
        self.assertTrue(mine.acquire())
        self.assertEqual(self.path.read_text(encoding="utf-8").strip(), str(os.getpid()))
        self.assertTrue(mine.acquire())

        # Our parent process is certainly alive.
        other = WatchLock(self.path, pid=os.getppid())
        self.assertFalse(other.acquire())
        self.assertTrue(mine.owned())

    def test_strict_acquire_raises(self) -> None:
        from agentswarm.watch_lock import WatchLock, WatchLockHeld

        WatchLock(self.path).acquire()
        with self.assertRaises(WatchLockHeld) as cm:
            WatchLock(self.path, pid=os.getppid()).acquire(strict=True)
        self.assertEqual(cm.exception.owner, os.getpid())

    def test_stale_lock_is_taken_over(self) -> None:
        from agentswarm.watch_lock import WatchLock

        self.path.parent.mkdir(parents=True)
        self.path.write_text("999999\n", encoding="utf-8")
        with mock.patch("agentswarm.watch_lock.pid_alive", return_value=False):
            self.assertTrue(WatchLock(self.path).acquire())
        self.assertEqual(self.path.read_text(encoding="utf-8").strip(), str(os.getpid()))

    def test_garbage_lock_is_stale_once_old(self) -> None:
        from agentswarm.watch_lock import WatchLock

        self.path.parent.mkdir(parents=True)
        self.path.write_text("not-a-pid", encoding="utf-8")
        old = self.path.stat().st_mtime - 60
        os.utime(self.path, (old, old))
        self.assertTrue(WatchLock(self.path).acquire())

    def test_fresh_empty_lock_counts_as_held(self) -> None:
        from agentswarm.watch_lock import WatchLock

        self.path.parent.mkdir(parents=True)
        self.path.write_text("", encoding="utf-8")
        self.assertFalse(WatchLock(self.path).acquire())

    def test_release_only_by_owner(self) -> None:
        from agentswarm.watch_lock import WatchLock

        mine = WatchLock(self.path)
        mine.acquire()
        self.assertFalse(WatchLock(self.path, pid=os.getppid()).release())
        self.assertTrue(self.path.exists())
        self.assertTrue(mine.release())
        self.assertFalse(self.path.exists())
        self.assertFalse(mine.release())

    def test_context_manager(self) -> None:
        from agentswarm.watch_lock import WatchLock

        with WatchLock(self.path) as lock:
            self.assertTrue(lock.owned())
        self.assertFalse(self.path.exists())


class TestKillExistingWatch(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.path = Path(self._td.name) / "watch.lock"

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_dead_pid_removes_file_without_signal(self) -> None:
        from agentswarm.watch_lock import kill_existing_watch

        self.path.write_text("424242\n", encoding="utf-8")
        with mock.patch("agentswarm.watch_lock.pid_alive", return_value=False), mock.patch(
            "agentswarm.watch_lock.os.kill"
        ) as kill:
            res = kill_existing_watch(self.path)
        kill.assert_not_called()
        self.assertFalse(res.signaled)
        self.assertTrue(res.removed)
        self.assertTrue(res.ok)
        self.assertFalse(self.path.exists())

    def test_non_numeric_content(self) -> None:
        from agentswarm.watch_lock import kill_existing_watch

        self.path.write_text("hello\n", encoding="utf-8")
        res = kill_existing_watch(self.path)
        self.assertIsNone(res.pid)
        self.assertTrue(res.removed)

    def test_missing_file(self) -> None:
        from agentswarm.watch_lock import kill_existing_watch

        res = kill_existing_watch(self.path)
        self.assertIsNone(res.pid)
        self.assertFalse(res.removed)
        self.assertTrue(res.ok)

    def test_live_pid_is_terminated_and_polled(self) -> None:
        import signal

        from agentswarm.watch_lock import kill_existing_watch

        self.path.write_text("424242\n", encoding="utf-8")
        alive = iter([True, True, True, False])
        sleeps = []
        with mock.patch("agentswarm.watch_lock.pid_alive", side_effect=lambda pid: next(alive)), mock.patch(
            "agentswarm.watch_lock.os.kill"
        ) as kill:
            res = kill_existing_watch(self.path, attempts=5, wait_seconds=0.1, sleep=sleeps.append)
        kill.assert_called_once_with(424242, signal.SIGTERM)
        self.assertTrue(res.signaled)
        self.assertTrue(res.stopped)
        self.assertEqual(sleeps, [0.1, 0.1])
        self.assertFalse(self.path.exists())

    def test_survivor_is_reported(self) -> None:
        from agentswarm.watch_lock import kill_existing_watch

        self.path.write_text("424242\n", encoding="utf-8")
        with mock.patch("agentswarm.watch_lock.pid_alive", return_value=True), mock.patch("agentswarm.watch_lock.os.kill"):
            res = kill_existing_watch(self.path, attempts=3, sleep=lambda _s: None)
        self.assertTrue(res.signaled)
        self.assertFalse(res.stopped)
        self.assertFalse(res.ok)
        self.assertFalse(self.path.exists())


if __name__ == "__main__":
    unittest.main()
