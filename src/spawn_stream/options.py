"""Spawn request options."""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Union

DEFAULT_ENCODING = "utf-8"
DEFAULT_RETRY_DELAY = 1.0

StdinSource = Union[AsyncIterable[Union[str, bytes]], Iterable[Union[str, bytes]]]


@dataclass(frozen=True)
class SpawnOptions:
    """Everything a spawn request can be configured with.

    The engine-specific fields are consumed by the stream itself. Only what
    ``popen_kwargs()`` returns reaches ``asyncio.create_subprocess_exec``.
    """

    stdin: StdinSource | None = None  # input chunks piped to the child
    echo_output: bool = False
    jobber: bool = False
    encoding: str = DEFAULT_ENCODING
    timeout: float | None = None  # seconds, None or <= 0 disables
    retries: int = 0
    retry_delay: float = DEFAULT_RETRY_DELAY
    detached: bool = False
    cwd: str | Path | None = None
    env: Mapping[str, str] | None = None
    stdio: tuple[Any, Any, Any] | None = None  # (stdin, stdout, stderr) as for Popen
    logger: logging.Logger | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_kwargs(cls, **kwargs: Any) -> SpawnOptions:
        """Split recognized option keys from passthrough spawn keywords."""
        known = {f.name for f in fields(cls)} - {"extra"}
        extra = dict(kwargs.pop("extra", None) or {})
        options = {}
        for key, value in kwargs.items():
            if key in known:
                options[key] = value
            else:
                extra[key] = value
        return cls(extra=extra, **options)

    def evolve(self, **changes: Any) -> SpawnOptions:
        return replace(self, **changes)

    def popen_kwargs(self) -> dict[str, Any]:
        """Native spawn keywords, with every engine-specific extra stripped."""
        if self.stdio is not None:
            stdin, stdout, stderr = self.stdio
        else:
            stdin = subprocess.PIPE if self.stdin is not None else None
            stdout = subprocess.PIPE
            stderr = subprocess.PIPE

        kwargs: dict[str, Any] = dict(self.extra)
        kwargs.update(stdin=stdin, stdout=stdout, stderr=stderr)
        if self.cwd is not None:
            kwargs["cwd"] = str(self.cwd)
        if self.env is not None:
            kwargs["env"] = dict(self.env)
        if self.detached:
            if sys.platform == "win32":
                kwargs["creationflags"] = kwargs.get("creationflags", 0) | subprocess.CREATE_NEW_PROCESS_GROUP
            else:
                kwargs["start_new_session"] = True
        return kwargs
