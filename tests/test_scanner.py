import unittest
from unittest import mock


class TestScanner(unittest.TestCase):
    def setUp(self) -> None:
        from fake_tmux import FakeClock, FakeTmux

        self.tmux = FakeTmux()
        self.clock = FakeClock()

    def _scanner(self, **kw):
        from agentswarm.scanner import Scanner

        return Scanner(self.tmux, clock=self.clock, **kw)

    def test_agent_going_idle_is_confirmed_then_belled(self) -> None:
        from agentswarm.contracts.v1 import PaneState
        from fake_tmux import IDLE_TEXT, WORKING_TEXT

        self.tmux.add_pane("s:0.0", text=WORKING_TEXT, agent="api", tty="/dev/pts/10")
        self.tmux.clients["s"] = ["/dev/pts/1", "/dev/pts/10"]
        sc = self._scanner()

        with mock.patch("agentswarm.display._write_tty", return_value=True) as w:
            r = sc.scan(self.tmux.list_panes("s"))
            self.assertEqual(r.idle_count, 0)
            self.assertEqual(self.tmux.get_option("s:0.0", "@swarm_state"), "working")

            self.tmux.set_text("s:0.0", IDLE_TEXT)
            self.clock.now += 5
            r = sc.scan(self.tmux.list_panes("s"))
            self.assertEqual(r.transitioned, [])
            self.assertEqual(sc.views[0].state, PaneState.WORKING)
            w.assert_not_called()

            self.clock.now += 5
            r = sc.scan(self.tmux.list_panes("s"))
            self.assertEqual(r.transitioned, ["s:0.0"])
            self.assertEqual(r.idle_count, 1)
            self.assertTrue(r.actionable)
            self.assertEqual([e.name for e in r.newly_actionable], ["api"])
            # The bell goes to the client terminal, never into the pane itself.
            w.assert_called_once_with("/dev/pts/1", "\a")

        self.assertEqual(self.tmux.get_option("s:0.0", "@swarm_state"), "idle")
        self.assertEqual(self.tmux.get_option("s:0.0", "@swarm_state_since"), str(int(self.clock.now)))

    def test_shell_pane_is_exited_on_first_tick(self) -> None:
        from agentswarm.contracts.v1 import PaneState

        self.tmux.add_pane("s:1.2", command="bash", text="$ ", window_name="logs", path="/srv/app")
        with mock.patch("agentswarm.display._write_tty", return_value=True) as w:
            r = self._scanner().scan(self.tmux.list_panes("s"))
            w.assert_not_called()
        self.assertEqual(r.transitioned, [])
        self.assertEqual(len(r.newly_actionable), 1)
        entry = r.newly_actionable[0]
        self.assertEqual(entry.state, PaneState.EXITED)
        self.assertEqual(entry.name, "logs.2")
        self.assertEqual(entry.cwd, "/srv/app")

    def test_idle_agent_crashing_is_reported_again(self) -> None:
        from agentswarm.contracts.v1 import PaneState
        from fake_tmux import IDLE_TEXT

        self.tmux.add_pane("s:0.0", text=IDLE_TEXT, agent="api")
        sc = self._scanner(bell=False)
        self.assertEqual(len(sc.scan(self.tmux.list_panes("s")).newly_actionable), 1)
        self.assertEqual(sc.scan(self.tmux.list_panes("s")).newly_actionable, [])

        self.tmux.set_text("s:0.0", "Segmentation fault\n$ ", command="bash")
        r = sc.scan(self.tmux.list_panes("s"))
        self.assertEqual([(e.name, e.state) for e in r.newly_actionable], [("api", PaneState.EXITED)])

    def test_conductor_is_never_actionable(self) -> None:
        from fake_tmux import IDLE_TEXT

        self.tmux.add_pane("s:0.0", text=IDLE_TEXT, role="conductor")
        r = self._scanner().scan(self.tmux.list_panes("s"))
        self.assertFalse(r.actionable)
        self.assertEqual(r.newly_actionable, [])
        self.assertEqual(r.idle_count, 1)

    def test_restart_keeps_durable_state_since(self) -> None:
        from fake_tmux import IDLE_TEXT

        self.tmux.add_pane("s:0.0", text=IDLE_TEXT)
        self.tmux.options[("s:0.0", "@swarm_state")] = "idle"
        self.tmux.options[("s:0.0", "@swarm_state_since")] = "1699999000"

        sc = self._scanner()
        r = sc.scan(self.tmux.list_panes("s"))
        self.assertEqual(sc.views[0].state_since, 1699999000.0)
        self.assertEqual(self.tmux.get_option("s:0.0", "@swarm_state_since"), "1699999000")
        # A fresh watcher has never reported this pane, so it is still news.
        self.assertEqual([e.target for e in r.newly_actionable], ["s:0.0"])
        self.assertTrue(r.actionable)

    def test_without_tags_nothing_is_written(self) -> None:
        from fake_tmux import IDLE_TEXT

        self.tmux.add_pane("s:0.0", text=IDLE_TEXT)
        self._scanner(persist_tags=False).scan(self.tmux.list_panes("s"))
        self.assertEqual(self.tmux.get_option("s:0.0", "@swarm_state"), "")

    def test_vanished_panes_are_forgotten(self) -> None:
        self.tmux.add_pane("s:0.0", text="")
        self.tmux.add_pane("t:0.0", text="")
        sc = self._scanner()
        sc.scan(self.tmux.list_panes(None))
        self.tmux.remove_session("t")
        sc.scan(self.tmux.list_panes(None))
        self.assertEqual(list(sc.tracker.records), ["s:0.0"])


if __name__ == "__main__":
    unittest.main()
