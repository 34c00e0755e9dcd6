"""Collect a process's output stream into a single value.

``spawn_output`` merges stdout and stderr in arrival order; the ``_split``
variants keep them apart. On failure the raised error carries whatever was
collected before it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from spawn_stream.errors import ProcessError
from spawn_stream.stream import ProcessStream, spawn, spawn_detached


def _output_error(stream: ProcessStream, error: Exception, out: str, stdout: str, stderr: str | None) -> ProcessError:
    message = f"{out}\n{error}"
    if isinstance(error, ProcessError):
        return error.with_output(message, stdout, stderr)
    return ProcessError(message, None, stream.exe, stream.args, stdout, stderr)


async def collect_output(stream: ProcessStream) -> str:
    """Concatenate every chunk of the stream, stdout and stderr interleaved as delivered.

    Raises:
        ProcessError: The stream failed. The message is the collected output
            followed by the underlying error message, and ``stdout`` holds the
            collected output.
    """
    chunks: list[str] = []
    try:
        async for event in stream:
            chunks.append(event.text)
    except Exception as e:
        out = "".join(chunks)
        raise _output_error(stream, e, out, out, None) from e
    return "".join(chunks)


async def collect_split_output(stream: ProcessStream) -> tuple[str, str]:
    """Collect stdout and stderr separately.

    Raises:
        ProcessError: The stream failed, with both partial buffers attached.
    """
    stdout: list[str] = []
    stderr: list[str] = []
    try:
        async for event in stream:
            (stdout if event.source == "stdout" else stderr).append(event.text)
    except Exception as e:
        out = "".join(stdout)
        raise _output_error(stream, e, out, out, "".join(stderr)) from e
    return "".join(stdout), "".join(stderr)


async def spawn_output(exe: str, args: Sequence[str] = (), **options: Any) -> str:
    """Run a child process and return its merged output."""
    return await collect_output(spawn(exe, args, **options))


async def spawn_split_output(exe: str, args: Sequence[str] = (), **options: Any) -> tuple[str, str]:
    """Run a child process and return ``(stdout, stderr)``."""
    return await collect_split_output(spawn(exe, args, **options))


async def spawn_detached_output(exe: str, args: Sequence[str] = (), **options: Any) -> str:
    """Run a detached process and return its merged output."""
    return await collect_output(spawn_detached(exe, args, **options))


async def spawn_detached_split_output(exe: str, args: Sequence[str] = (), **options: Any) -> tuple[str, str]:
    """Run a detached process and return ``(stdout, stderr)``."""
    return await collect_split_output(spawn_detached(exe, args, **options))


@dataclass(frozen=True)
class SpawnCommand:
    """A reusable executable and argument list.

    ```python
    git_status = create_spawn_command("git", ["status", "--short"])
    out = await git_status.output(cwd=repo)
    ```
    """

    exe: str
    args: Sequence[str] = field(default_factory=tuple)

    def spawn(self, **options: Any) -> ProcessStream:
        return spawn(self.exe, self.args, **options)

    def spawn_detached(self, **options: Any) -> ProcessStream:
        return spawn_detached(self.exe, self.args, **options)

    async def output(self, **options: Any) -> str:
        return await spawn_output(self.exe, self.args, **options)

    async def split_output(self, **options: Any) -> tuple[str, str]:
        return await spawn_split_output(self.exe, self.args, **options)

    async def detached_output(self, **options: Any) -> str:
        return await spawn_detached_output(self.exe, self.args, **options)

    async def detached_split_output(self, **options: Any) -> tuple[str, str]:
        return await spawn_detached_split_output(self.exe, self.args, **options)


def create_spawn_command(exe: str, args: Sequence[str] = ()) -> SpawnCommand:
    return SpawnCommand(exe, tuple(args))
