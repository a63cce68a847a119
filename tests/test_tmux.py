import subprocess
import unittest
from unittest import mock


def _completed(stdout: str = "", code: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["tmux"], returncode=code, stdout=stdout, stderr="")


class TestTmuxSurface(unittest.TestCase):
    def test_list_panes_parses_one_call(self) -> None:
        from agentswarm.tmux import Tmux

        row = "\t".join(
            ["work", "1", "2", "%7", "agents", "node", "/dev/pts/4", "api", "", "idle", "1700000000", "/w/a\tb"]
        )
        with mock.patch("agentswarm.tmux.subprocess.run", return_value=_completed(row + "\nbroken\n")) as run:
            panes = Tmux(socket_name="swarm").list_panes("work")
        cmd = run.call_args.args[0]
        self.assertEqual(cmd[:4], ["tmux", "-L", "swarm", "list-panes"])
        self.assertIn("=work", cmd)
        self.assertEqual(len(panes), 1)
        p = panes[0]
        self.assertEqual(str(p.target), "work:1.2")
        self.assertEqual(p.tty, "/dev/pts/4")
        self.assertEqual(p.agent_name, "api")
        self.assertEqual(p.state_tag, "idle")
        self.assertEqual(p.path, "/w/a\tb")

    def test_failures_degrade(self) -> None:
        from agentswarm.tmux import Tmux

        t = Tmux(socket_name="")
        with mock.patch("agentswarm.tmux.subprocess.run", return_value=_completed(code=1)):
            self.assertEqual(t.list_panes(None), [])
            self.assertEqual(t.capture("s:0.0"), "")
            self.assertFalse(t.has_session("s"))
            self.assertFalse(t.set_option("s:0.0", "@swarm_state", "idle"))
            self.assertIsNone(t.active_window("s"))
        with mock.patch("agentswarm.tmux.subprocess.run", side_effect=subprocess.TimeoutExpired("tmux", 3)):
            self.assertEqual(t._run(["list-sessions"])[0], 124)
            self.assertFalse(t.server_running())
        with mock.patch("agentswarm.tmux.subprocess.run", side_effect=FileNotFoundError()):
            self.assertEqual(t._run(["list-sessions"])[0], 127)

    def test_capture_strips_trailing_blank_lines(self) -> None:
        from agentswarm.tmux import Tmux

        with mock.patch("agentswarm.tmux.subprocess.run", return_value=_completed("Done.   \n❯ \n\n\n")):
            self.assertEqual(Tmux(socket_name="").capture("s:0.0"), "Done.\n❯")
            self.assertEqual(Tmux(socket_name="").capture("s:0.0", lines=1), "❯")

    def test_literal_text_is_not_key_parsed(self) -> None:
        from agentswarm.tmux import Tmux

        with mock.patch("agentswarm.tmux.subprocess.run", return_value=_completed()) as run:
            self.assertTrue(Tmux(socket_name="").send_literal("s:0.0", "Enter"))
        self.assertEqual(run.call_args.args[0], ["tmux", "send-keys", "-t", "s:0.0", "-l", "Enter"])


if __name__ == "__main__":
    unittest.main()
