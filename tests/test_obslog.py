import io
import json
import logging
import sys
import unittest


class TestJsonlLogging(unittest.TestCase):
    def test_extra_keys_are_carried(self) -> None:
        from agentswarm.util.obslog import JsonlFormatter

        buf = io.StringIO()
        h = logging.StreamHandler(buf)
        h.setFormatter(JsonlFormatter(component="swarm-watch"))
        log = logging.getLogger("agentswarm.test_obslog")
        log.propagate = False
        log.addHandler(h)
        try:
            log.warning("api: working -> idle", extra={"pane": "s:0.0", "state": "idle", "reason": ""})
        finally:
            log.removeHandler(h)
        doc = json.loads(buf.getvalue().strip())
        self.assertEqual(doc["component"], "swarm-watch")
        self.assertEqual(doc["level"], "WARNING")
        self.assertEqual(doc["msg"], "api: working -> idle")
        self.assertEqual(doc["pane"], "s:0.0")
        self.assertNotIn("reason", doc)

    def test_level_parsing(self) -> None:
        from agentswarm.util.obslog import _parse_level

        self.assertEqual(_parse_level("debug"), logging.DEBUG)
        self.assertEqual(_parse_level(""), logging.INFO)
        self.assertEqual(_parse_level("bogus"), logging.INFO)

    def test_exception_text_and_timestamp(self) -> None:
        from agentswarm.util.obslog import JsonlFormatter

        try:
            raise RuntimeError("tmux went away")
        except RuntimeError:
            rec = logging.getLogger("agentswarm.x").makeRecord(
                "agentswarm.x", logging.ERROR, __file__, 1, "scan failed", (), sys.exc_info()
            )
        rec.created = 1_700_000_000.25
        doc = json.loads(JsonlFormatter(component="swarm-watch").format(rec))
        self.assertEqual(doc["ts"], "2023-11-14T22:13:20.250Z")
        self.assertIn("RuntimeError: tmux went away", doc["exc"])

    def test_repeated_setup_keeps_one_handler(self) -> None:
        from agentswarm.util.obslog import setup_root_json_logging

        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            buf = io.StringIO()
            setup_root_json_logging(component="swarm-watch", stream=buf, force=True)
            setup_root_json_logging(component="swarm-watch", level="DEBUG", stream=io.StringIO())
            self.assertEqual(len(root.handlers), 1)
            self.assertEqual(root.handlers[0].level, logging.DEBUG)
            logging.getLogger("agentswarm.y").debug("tick")
            self.assertEqual(json.loads(buf.getvalue())["msg"], "tick")
        finally:
            for h in list(root.handlers):
                root.removeHandler(h)
            for h in saved_handlers:
                root.addHandler(h)
            root.setLevel(saved_level)


if __name__ == "__main__":
    unittest.main()
