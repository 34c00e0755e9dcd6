"""Unit tests for SpawnOptions."""

import logging
import subprocess
import sys
import unittest

from spawn_stream import SpawnOptions


class TestSpawnOptions(unittest.TestCase):
    """Test option parsing and the native spawn keywords."""

    def test_defaults(self):
        options = SpawnOptions()
        self.assertEqual(options.encoding, "utf-8")
        self.assertEqual(options.retries, 0)
        self.assertEqual(options.retry_delay, 1.0)
        self.assertIsNone(options.timeout)
        self.assertFalse(options.echo_output)

    def test_unknown_keys_are_passthrough(self):
        options = SpawnOptions.from_kwargs(timeout=2, retries=1, cwd="/tmp", limit=1024)
        self.assertEqual(options.timeout, 2)
        self.assertEqual(options.retries, 1)
        self.assertEqual(dict(options.extra), {"limit": 1024})

    def test_engine_extras_are_stripped(self):
        logger = logging.getLogger("test.options")
        options = SpawnOptions.from_kwargs(
            stdin=["x"],
            echo_output=True,
            jobber=True,
            encoding="latin-1",
            timeout=1,
            retries=3,
            retry_delay=0.5,
            logger=logger,
            limit=1024,
        )
        kwargs = options.popen_kwargs()

        for key in ("echo_output", "jobber", "encoding", "timeout", "retries", "retry_delay", "logger", "split"):
            self.assertNotIn(key, kwargs)
        self.assertEqual(kwargs["limit"], 1024)
        self.assertEqual(kwargs["stdin"], subprocess.PIPE)
        self.assertEqual(kwargs["stdout"], subprocess.PIPE)
        self.assertEqual(kwargs["stderr"], subprocess.PIPE)

    def test_stdin_inherited_without_source(self):
        self.assertIsNone(SpawnOptions().popen_kwargs()["stdin"])

    def test_stdio_override(self):
        options = SpawnOptions(stdio=(subprocess.DEVNULL, subprocess.PIPE, subprocess.STDOUT))
        kwargs = options.popen_kwargs()
        self.assertEqual(
            (kwargs["stdin"], kwargs["stdout"], kwargs["stderr"]),
            (subprocess.DEVNULL, subprocess.PIPE, subprocess.STDOUT),
        )

    def test_cwd_and_env(self):
        kwargs = SpawnOptions(cwd="/work", env={"A": "1"}).popen_kwargs()
        self.assertEqual(kwargs["cwd"], "/work")
        self.assertEqual(kwargs["env"], {"A": "1"})
        self.assertNotIn("cwd", SpawnOptions().popen_kwargs())

    @unittest.skipIf(sys.platform == "win32", "sessions are POSIX only")
    def test_detached_starts_new_session(self):
        self.assertTrue(SpawnOptions(detached=True).popen_kwargs()["start_new_session"])
        self.assertNotIn("start_new_session", SpawnOptions().popen_kwargs())

    def test_evolve_keeps_original(self):
        options = SpawnOptions(retries=1)
        changed = options.evolve(detached=True)
        self.assertFalse(options.detached)
        self.assertTrue(changed.detached)
        self.assertEqual(changed.retries, 1)


if __name__ == "__main__":
    unittest.main()
