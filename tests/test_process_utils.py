"""Unit tests for process termination helpers and the Jobber contract."""

import asyncio
import signal
import subprocess
import sys
import time
import unittest
from unittest import mock

import psutil

from spawn_stream.jobber import jobber_pipe_name, request_job_shutdown
from spawn_stream.process_utils import (
    force_kill,
    get_process_tree_info,
    kill_process_tree,
    terminate_process,
)

PY = sys.executable


def wait_gone(pid, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
                return True
        except psutil.NoSuchProcess:
            return True
        time.sleep(0.05)
    return False


def fake_process(returncode=None, pid=4242):
    return mock.Mock(returncode=returncode, pid=pid)


class TestTerminateProcess(unittest.TestCase):
    """Test the termination protocol on stand-in processes."""

    def test_exited_process_is_left_alone(self):
        process = fake_process(returncode=0)
        terminate_process(process)
        process.terminate.assert_not_called()
        process.kill.assert_not_called()

    def test_default_requests_termination(self):
        process = fake_process()
        terminate_process(process)
        process.terminate.assert_called_once_with()

    def test_process_that_vanished_is_ignored(self):
        process = fake_process()
        process.terminate.side_effect = ProcessLookupError
        terminate_process(process)

    @unittest.skipIf(sys.platform == "win32", "process groups are POSIX only")
    def test_detached_signals_the_group(self):
        process = fake_process()
        with mock.patch("os.getpgid", return_value=777) as getpgid, mock.patch("os.killpg") as killpg:
            terminate_process(process, detached=True)

        getpgid.assert_called_once_with(4242)
        killpg.assert_called_once_with(777, signal.SIGTERM)
        process.terminate.assert_not_called()


class TestJobberEscalation(unittest.IsolatedAsyncioTestCase):
    """Test the cooperative shutdown with delayed forced kill."""

    async def test_forced_kill_after_grace(self):
        process = fake_process()
        with mock.patch("spawn_stream.process_utils.request_job_shutdown") as request, mock.patch(
            "spawn_stream.process_utils.kill_process_tree"
        ) as kill_tree:
            terminate_process(process, jobber=True, kill_grace=0.01)
            request.assert_called_once_with(4242, log=mock.ANY)
            kill_tree.assert_not_called()

            await asyncio.sleep(0.1)

        kill_tree.assert_called_once_with(4242)
        process.terminate.assert_not_called()

    async def test_no_kill_when_job_shut_down_in_time(self):
        process = fake_process()
        with mock.patch("spawn_stream.process_utils.request_job_shutdown"), mock.patch(
            "spawn_stream.process_utils.kill_process_tree"
        ) as kill_tree:
            terminate_process(process, jobber=True, kill_grace=0.05)
            process.returncode = 1
            await asyncio.sleep(0.15)

        kill_tree.assert_not_called()


class TestJobberPipe(unittest.TestCase):
    """Test the named pipe contract."""

    def test_pipe_name(self):
        self.assertEqual(jobber_pipe_name(1234), r"\\.\pipe\jobber-1234")

    def test_connect_and_hang_up(self):
        opener = mock.mock_open()
        with mock.patch("builtins.open", opener):
            request_job_shutdown(1234)
        opener.assert_called_once_with(r"\\.\pipe\jobber-1234", "r+b", buffering=0)

    def test_connect_failure_is_logged(self):
        with mock.patch("builtins.open", side_effect=FileNotFoundError("no pipe")):
            with self.assertLogs("spawn_stream.jobber", level="WARNING") as logs:
                request_job_shutdown(1234)
        self.assertIn("jobber-1234", logs.output[0])


class TestProcessTree(unittest.TestCase):
    """Test psutil-backed process tree helpers on real processes."""

    def test_kill_process_tree(self):
        proc = subprocess.Popen([PY, "-c", "import time; time.sleep(30)"])  # noqa: S603
        try:
            kill_process_tree(proc.pid)
            self.assertIsNotNone(proc.wait(timeout=10))
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()

    def test_kill_process_tree_kills_children(self):
        code = (
            "import subprocess, sys, time\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "print(child.pid, flush=True)\n"
            "time.sleep(30)\n"
        )
        proc = subprocess.Popen([PY, "-c", code], stdout=subprocess.PIPE, text=True)  # noqa: S603
        try:
            assert proc.stdout is not None
            child_pid = int(proc.stdout.readline())
            kill_process_tree(proc.pid)
            proc.wait(timeout=10)

            self.assertTrue(wait_gone(child_pid))
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            if proc.stdout is not None:
                proc.stdout.close()

    def test_kill_missing_process_is_quiet(self):
        proc = subprocess.Popen([PY, "-c", "pass"])  # noqa: S603
        proc.wait()
        kill_process_tree(proc.pid)

    def test_force_kill_skips_exited_process(self):
        process = fake_process(returncode=0)
        with mock.patch("spawn_stream.process_utils.kill_process_tree") as kill_tree:
            force_kill(process)
        kill_tree.assert_not_called()

    def test_force_kill_falls_back_to_plain_kill(self):
        process = fake_process()
        with mock.patch("spawn_stream.process_utils.kill_process_tree", side_effect=PermissionError):
            force_kill(process)
        process.kill.assert_called_once_with()

    def test_process_tree_info(self):
        proc = subprocess.Popen([PY, "-c", "import time; time.sleep(30)"])  # noqa: S603
        try:
            info = get_process_tree_info(proc.pid)
        finally:
            proc.kill()
            proc.wait()
        self.assertTrue(info.startswith(f"Process {proc.pid} ("))
        self.assertIn("Status:", info)

    def test_process_tree_info_for_missing_process(self):
        proc = subprocess.Popen([PY, "-c", "pass"])  # noqa: S603
        proc.wait()
        self.assertEqual(get_process_tree_info(proc.pid), f"Could not get process info for PID {proc.pid}")


if __name__ == "__main__":
    unittest.main()
