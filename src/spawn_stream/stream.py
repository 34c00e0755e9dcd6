"""Multicast output stream over a live child process.

## Basic Usage

```python
stream = spawn("git", ["status"])
async for event in stream:
    print(event.source, event.text)
```

### Several consumers, one process
```python
stream = spawn(sys.executable, ["-c", "print('hi')"])
first = stream.subscribe()
second = stream.subscribe()
# Both observe the same events from the single process that was launched.
```

The process is launched when the first consumer subscribes and torn down
when the last one detaches before it finishes. A subscription that is closed
after the process exited never signals it.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import sys
import time
from collections.abc import AsyncIterable, AsyncIterator, Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Literal, NamedTuple, Union

from spawn_stream.errors import LaunchError, ProcessExitError, ProcessTimeoutError, StdinConflictError
from spawn_stream.executable import ResolvedCommand, find_actual_executable, find_jobber_executable
from spawn_stream.options import SpawnOptions, StdinSource
from spawn_stream.policy import arm_timeout, run_with_retries
from spawn_stream.process_utils import force_kill, get_process_tree_info, terminate_process

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536

# How long a torn-down process gets to exit before it is killed outright
TERMINATE_GRACE_SECONDS = 5.0


class OutputEvent(NamedTuple):
    """One decoded chunk of output."""

    source: Literal["stdout", "stderr"]
    text: str


class EndOfStream:
    """Sentinel used to indicate end-of-stream to subscribers."""


@dataclass
class ProcessMetadata:
    """Information about the process an activation launched."""

    pid: int
    start_time: float
    command: str
    args: tuple[str, ...]


_Item = Union[OutputEvent, EndOfStream, BaseException]


async def _iterate_source(source: StdinSource) -> AsyncIterator[str | bytes]:
    if isinstance(source, (str, bytes)):
        yield source
    elif isinstance(source, AsyncIterable):
        async for chunk in source:
            yield chunk
    else:
        for chunk in source:
            yield chunk


class _Activation:
    """One launch of a ProcessStream, shared by every attached subscriber."""

    def __init__(self, stream: ProcessStream) -> None:
        self._stream = stream
        self._options = stream.options
        self._log = stream.options.logger or logger
        self._subscribers: list[asyncio.Queue[_Item]] = []
        self._task: asyncio.Task[None] | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._reaper: asyncio.Task[None] | None = None
        self._finished = False
        self._disposed = False
        self.metadata: ProcessMetadata | None = None

    @property
    def live(self) -> bool:
        return not (self._finished or self._disposed)

    def attach(self) -> asyncio.Queue[_Item]:
        queue: asyncio.Queue[_Item] = asyncio.Queue()
        self._subscribers.append(queue)
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return queue

    def detach(self, queue: asyncio.Queue[_Item]) -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(queue)
        if not self._subscribers:
            self._dispose()

    def _dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._finished:
            return

        process = self._process
        if process is not None and process.returncode is None:
            self._log.debug("Killing process: %s", self._describe())
            terminate_process(
                process,
                detached=self._options.detached,
                jobber=self._options.jobber,
                log=self._log,
            )
            self._reaper = asyncio.get_running_loop().create_task(self._reap(process, TERMINATE_GRACE_SECONDS))
        if self._task is not None:
            self._task.cancel()

    async def _reap(self, process: asyncio.subprocess.Process, grace: float) -> None:
        try:
            await asyncio.wait_for(process.wait(), grace)
        except asyncio.TimeoutError:
            self._log.debug("Process %s still running %ss after termination, killing it", process.pid, grace)
            self._abandon(process)

    def _abandon(self, process: asyncio.subprocess.Process) -> None:
        force_kill(process, self._log)
        # asyncio.subprocess.Process has no public way to release its pipes,
        # which a surviving grandchild may still hold open
        process._transport.close()  # noqa: SLF001

    def _describe(self) -> str:
        if self.metadata is None:
            return self._stream.exe
        return " ".join([self.metadata.command, *self.metadata.args])

    def _publish(self, item: _Item) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(item)

    def _finish(self, item: EndOfStream | BaseException) -> None:
        if self._finished:
            return
        self._finished = True
        self._publish(item)

    async def _run(self) -> None:
        try:
            await run_with_retries(
                self._run_attempt,
                retries=self._options.retries,
                retry_delay=self._options.retry_delay,
                log=self._log,
                description=self._stream.exe,
            )
        except Exception as e:  # noqa: BLE001 - forwarded to subscribers as the terminal error
            self._finish(e)
        else:
            self._finish(EndOfStream())

    async def _run_attempt(self) -> None:
        options = self._options
        loop = asyncio.get_running_loop()
        cmd, args = self._stream.resolve()

        self._log.debug("spawning process: %s %s", cmd, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(cmd, *args, **options.popen_kwargs())
        except OSError as e:
            raise LaunchError(cmd, args, e) from e
        self._process = process
        self.metadata = ProcessMetadata(pid=process.pid, start_time=time.time(), command=cmd, args=args)

        failure: asyncio.Future[BaseException] = loop.create_future()

        def fail(error: BaseException) -> None:
            if not failure.done():
                failure.set_result(error)

        def on_timeout() -> None:
            # the child may be gone while a descendant keeps its pipes open,
            # the deadline still ends the stream
            self._log.debug("Process timeout reached: %s", self._describe())
            if process.returncode is None and self._log.isEnabledFor(logging.DEBUG):
                self._log.debug(get_process_tree_info(process.pid))
            force_kill(process, self._log)
            fail(ProcessTimeoutError(options.timeout, cmd, args))

        timer = arm_timeout(options.timeout, on_timeout)
        tasks: list[asyncio.Future[Any]] = [asyncio.ensure_future(process.wait())]
        if process.stdout is not None:
            tasks.append(loop.create_task(self._pump(process.stdout, "stdout")))
        if process.stderr is not None:
            tasks.append(loop.create_task(self._pump(process.stderr, "stderr")))
        # Exit alone is not enough: trailing output may still sit in the pipes
        closed = asyncio.gather(*tasks)

        try:
            if options.stdin is not None:
                if process.stdin is None:
                    fail(StdinConflictError(cmd, args))
                else:
                    tasks.append(loop.create_task(self._feed(process.stdin, options.stdin, fail)))

            await asyncio.wait([closed, failure], return_when=asyncio.FIRST_COMPLETED)
            if failure.done():
                raise failure.result()
            returncode = closed.result()[0]
        except Exception:
            self._abandon(process)
            raise
        finally:
            if timer is not None:
                timer.cancel()
            for task in tasks:
                task.cancel()
            closed.cancel()
            # a cancelled gather still reports its outcome, read it so nothing is logged as lost
            closed.add_done_callback(_consume_outcome)

        if returncode != 0:
            raise ProcessExitError(returncode, cmd, args)

    async def _pump(self, reader: asyncio.StreamReader, source: Literal["stdout", "stderr"]) -> None:
        decoder = codecs.getincrementaldecoder(self._options.encoding)()
        while True:
            chunk = await reader.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            self._emit(source, self._decode(decoder, chunk))
        self._emit(source, self._decode(decoder, b"", final=True))

    def _decode(self, decoder: codecs.IncrementalDecoder, chunk: bytes, final: bool = False) -> str:
        try:
            return decoder.decode(chunk, final)
        except UnicodeDecodeError:
            decoder.reset()
            return f"<< Lost chunk of process output for {self._stream.exe} - length was {len(chunk)}>>"

    def _emit(self, source: Literal["stdout", "stderr"], text: str) -> None:
        if not text:
            return
        if self._options.echo_output:
            target = sys.stdout if source == "stdout" else sys.stderr
            target.write(text)
            target.flush()
        self._publish(OutputEvent(source, text))

    async def _feed(
        self,
        writer: asyncio.StreamWriter,
        source: StdinSource,
        fail: Callable[[BaseException], None],
    ) -> None:
        try:
            async for chunk in _iterate_source(source):
                writer.write(chunk.encode(self._options.encoding) if isinstance(chunk, str) else chunk)
                await writer.drain()
        except (BrokenPipeError, ConnectionResetError):
            self._log.debug("Child closed its stdin before the input source completed")
            return
        except Exception as e:  # noqa: BLE001 - a failing input source fails the stream
            fail(e)
            return
        writer.close()


def _consume_outcome(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()


class OutputSubscription(AbstractAsyncContextManager["OutputSubscription"], AsyncIterator[OutputEvent]):
    """One consumer attached to a ProcessStream.

    Iterating yields OutputEvents until the process completes, raising the
    stream's terminal error if it fails. Leaving the ``async with`` block
    (or calling ``close()``) detaches; the last detachment tears the process down.
    """

    def __init__(self, activation: _Activation) -> None:
        self._activation = activation
        self._queue = activation.attach()
        self._closed = False

    async def __aenter__(self) -> OutputSubscription:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        self.close()
        return False

    def __aiter__(self) -> OutputSubscription:
        return self

    async def __anext__(self) -> OutputEvent:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, EndOfStream):
            self.close()
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self.close()
            raise item
        return item

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._activation.detach(self._queue)


class ProcessStream:
    """A lazily launched, shareable stream of a process's output.

    Nothing runs until the first ``subscribe()``. Every subscriber attached
    while an activation is live shares that one process. Once the activation
    has finished or been torn down, the next subscriber launches a fresh
    process, resolving the executable again.
    """

    def __init__(self, exe: str, args: Sequence[str] = (), options: SpawnOptions | None = None) -> None:
        self.exe = exe
        self.args = tuple(args)
        self.options = options if options is not None else SpawnOptions()
        self._activation: _Activation | None = None

    def resolve(self) -> ResolvedCommand:
        resolved = find_actual_executable(self.exe, self.args)
        if self.options.jobber:
            return ResolvedCommand(find_jobber_executable(), (resolved.cmd, *resolved.args))
        return resolved

    def subscribe(self) -> OutputSubscription:
        """Attach a consumer, launching the process if nothing is running. Needs a running event loop."""
        if self._activation is None or not self._activation.live:
            self._activation = _Activation(self)
        return OutputSubscription(self._activation)

    @property
    def metadata(self) -> ProcessMetadata | None:
        """Metadata of the current or most recent attempt, if any was launched."""
        if self._activation is None:
            return None
        return self._activation.metadata

    async def __aiter__(self) -> AsyncIterator[OutputEvent]:
        async with self.subscribe() as subscription:
            async for event in subscription:
                yield event

    async def text(self) -> AsyncIterator[str]:
        """Yield only the decoded text of each event."""
        async for event in self:
            yield event.text

    def __repr__(self) -> str:
        return f"ProcessStream({self.exe!r}, {list(self.args)!r})"


def spawn(exe: str, args: Sequence[str] = (), **options: Any) -> ProcessStream:
    """Spawn ``exe`` as a child of the current process, lazily.

    Args:
        exe: The executable to run.
        args: Arguments to pass to it.
        **options: SpawnOptions fields. Anything else is passed through to
            asyncio.create_subprocess_exec.

    Returns:
        A ProcessStream. Subscribing launches the process, detaching every
        subscriber early terminates it, and a nonzero exit ends the stream
        with ProcessExitError.
    """
    return ProcessStream(exe, args, SpawnOptions.from_kwargs(**options))


def spawn_detached(exe: str, args: Sequence[str] = (), **options: Any) -> ProcessStream:
    """Spawn ``exe`` in its own process group so the whole group can be torn down.

    Windows has no process-group kill, so there the process runs under
    Jobber and teardown goes through Jobber's named pipe.
    """
    spawn_options = SpawnOptions.from_kwargs(**options).evolve(detached=True)
    if sys.platform == "win32":
        spawn_options = spawn_options.evolve(jobber=True)
    return ProcessStream(exe, args, spawn_options)
