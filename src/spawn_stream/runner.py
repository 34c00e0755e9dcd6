"""Blocking subprocess.run()-style facade over the split aggregation."""

from __future__ import annotations

import asyncio
import subprocess
from collections.abc import Sequence
from typing import Any

from spawn_stream.aggregate import spawn_split_output
from spawn_stream.errors import ProcessExitError


def spawn_run(
    exe: str,
    args: Sequence[str] = (),
    *,
    check: bool = False,
    **options: Any,
) -> subprocess.CompletedProcess[str]:
    """
    Run a command to completion from synchronous code, emulating subprocess.run().

    Must not be called from a running event loop. Executable resolution,
    timeouts and retries behave as for ``spawn``.

    Args:
        exe: The executable to run.
        args: Arguments to pass to it.
        check: If True, raise CalledProcessError for non-zero exit codes.
        **options: SpawnOptions fields and passthrough spawn keywords.

    Returns:
        CompletedProcess with the requested command line, the exit code and
        the separately collected stdout and stderr.

    Raises:
        CalledProcessError: If check=True and the process exits with a non-zero code.
        ProcessTimeoutError: If the process outlives ``timeout``.
        LaunchError: If the process could not be started.
    """
    command = [exe, *args]
    try:
        stdout, stderr = asyncio.run(spawn_split_output(exe, args, **options))
    except ProcessExitError as e:
        assert e.exit_code is not None  # always set for exit failures
        if check:
            raise subprocess.CalledProcessError(
                returncode=e.exit_code,
                cmd=command,
                output=e.stdout,
                stderr=e.stderr,
            ) from e
        return subprocess.CompletedProcess(
            args=command,
            returncode=e.exit_code,
            stdout=e.stdout or "",
            stderr=e.stderr or "",
        )

    return subprocess.CompletedProcess(args=command, returncode=0, stdout=stdout, stderr=stderr)
