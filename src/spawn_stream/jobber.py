"""Wire contract of the Jobber helper.

Jobber wraps a child in a Windows job object and listens on a named pipe
keyed by its own pid. Connecting to that pipe makes it terminate the whole
tree it supervises.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def jobber_pipe_name(pid: int) -> str:
    return rf"\\.\pipe\jobber-{pid}"


def request_job_shutdown(pid: int, log: logging.Logger = logger) -> None:
    """Connect to Jobber's pipe and hang up. Fire and forget."""
    name = jobber_pipe_name(pid)
    log.debug("Requesting job shutdown over %s", name)
    try:
        with open(name, "r+b", buffering=0):
            pass
    except OSError as e:
        log.warning("Could not connect to %s: %s", name, e)
