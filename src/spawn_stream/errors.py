"""Error taxonomy for spawned processes."""

from __future__ import annotations

from collections.abc import Sequence

TIMEOUT_EXIT_CODE = -1


class ProcessError(Exception):
    """A spawned process failed.

    Carries enough context to reconstruct what failed. ``stdout`` and
    ``stderr`` are only populated by the aggregation helpers, which buffer
    output while the process runs.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None,
        command: str,
        arguments: Sequence[str],
        stdout: str | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.command = command
        self.arguments = list(arguments)
        self.stdout = stdout
        self.stderr = stderr

    def __str__(self) -> str:
        return self.message

    def with_output(self, message: str, stdout: str | None, stderr: str | None) -> ProcessError:
        """Return a copy of this error with a new message and buffered output attached."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        Exception.__init__(clone, message)
        clone.message = message
        clone.stdout = stdout
        clone.stderr = stderr
        clone.__cause__ = self.__cause__
        return clone


class LaunchError(ProcessError):
    """The process could not be started at all."""

    def __init__(self, command: str, arguments: Sequence[str], cause: OSError) -> None:
        super().__init__(f"Failed to launch {command}: {cause}", None, command, arguments)
        self.errno = cause.errno


class ProcessExitError(ProcessError):
    """The process exited with a nonzero exit code. The only retryable failure."""

    def __init__(self, exit_code: int, command: str, arguments: Sequence[str]) -> None:
        super().__init__(f"Process failed with exit code: {exit_code}", exit_code, command, arguments)


class ProcessTimeoutError(ProcessError, TimeoutError):
    """The process outlived its deadline and was killed."""

    def __init__(self, timeout: float, command: str, arguments: Sequence[str]) -> None:
        super().__init__(f"Process timed out after {timeout}s", TIMEOUT_EXIT_CODE, command, arguments)
        self.timeout = timeout


class StdinConflictError(ProcessError):
    """An input source was given but the child has no writable stdin."""

    def __init__(self, command: str, arguments: Sequence[str]) -> None:
        super().__init__(
            "stdio configuration conflicts with the provided stdin source, a pipe is required",
            None,
            command,
            arguments,
        )
