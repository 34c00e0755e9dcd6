"""Process utilities for terminating processes and process trees."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal

import psutil

from spawn_stream.jobber import request_job_shutdown

JOBBER_KILL_GRACE_SECONDS = 5.0

logger = logging.getLogger(__name__)


def get_process_tree_info(pid: int) -> str:
    """Get information about a process and its children."""
    try:
        process = psutil.Process(pid)
        info = [f"Process {pid} ({process.name()})"]
        info.append(f"Status: {process.status()}")
        info.append(f"CPU Times: {process.cpu_times()}")

        children = process.children(recursive=True)
        if children:
            info.append("Child processes:")
            for child in children:
                info.append(f"  Child {child.pid} ({child.name()}) status={child.status()}")

        return "\n".join(info)
    except psutil.Error:
        return f"Could not get process info for PID {pid}"


def kill_process_tree(pid: int) -> None:
    """Force kill a process and all its children without waiting for them."""
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return

    for child in children:
        with contextlib.suppress(psutil.NoSuchProcess):
            child.kill()

    with contextlib.suppress(psutil.NoSuchProcess):
        parent.kill()


def force_kill(process: asyncio.subprocess.Process, log: logging.Logger = logger) -> None:
    """Kill the process tree, falling back to a plain kill if psutil cannot."""
    if process.returncode is not None:
        return
    try:
        kill_process_tree(process.pid)
    except (OSError, psutil.Error) as e:
        log.info("Failed to kill process tree for %s: %s", process.pid, e)
        with contextlib.suppress(ProcessLookupError):
            process.kill()


def _signal_process_group(process: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(os.getpgid(process.pid), signal.SIGTERM)
    except ProcessLookupError:
        return


def terminate_process(
    process: asyncio.subprocess.Process,
    *,
    detached: bool = False,
    jobber: bool = False,
    log: logging.Logger = logger,
    kill_grace: float = JOBBER_KILL_GRACE_SECONDS,
) -> None:
    """Ask a process to stop. Does nothing if it has already exited.

    Detached processes have their whole process group signalled. With
    ``jobber`` the helper owning the job is asked to shut the tree down over
    its named pipe, and the process is killed if it is still around after
    ``kill_grace`` seconds.
    """
    if process.returncode is not None:
        return

    if jobber:
        request_job_shutdown(process.pid, log=log)
        loop = asyncio.get_running_loop()
        loop.call_later(kill_grace, force_kill, process, log)
        return

    try:
        if detached and hasattr(os, "killpg"):
            _signal_process_group(process)
        else:
            process.terminate()
    except ProcessLookupError:
        log.debug("Process %s exited before it could be terminated", process.pid)
