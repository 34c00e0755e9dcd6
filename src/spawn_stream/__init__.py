"""Spawn child processes as cancellable, shareable output streams."""

from __future__ import annotations

__version__ = "1.0.0"

from spawn_stream.aggregate import (
    SpawnCommand,
    collect_output,
    collect_split_output,
    create_spawn_command,
    spawn_detached_output,
    spawn_detached_split_output,
    spawn_output,
    spawn_split_output,
)
from spawn_stream.errors import (
    LaunchError,
    ProcessError,
    ProcessExitError,
    ProcessTimeoutError,
    StdinConflictError,
)
from spawn_stream.executable import ResolvedCommand, find_actual_executable
from spawn_stream.options import SpawnOptions
from spawn_stream.process_utils import get_process_tree_info, kill_process_tree
from spawn_stream.runner import spawn_run
from spawn_stream.stream import (
    OutputEvent,
    OutputSubscription,
    ProcessMetadata,
    ProcessStream,
    spawn,
    spawn_detached,
)

__all__ = [
    "LaunchError",
    "OutputEvent",
    "OutputSubscription",
    "ProcessError",
    "ProcessExitError",
    "ProcessMetadata",
    "ProcessStream",
    "ProcessTimeoutError",
    "ResolvedCommand",
    "SpawnCommand",
    "SpawnOptions",
    "StdinConflictError",
    "collect_output",
    "collect_split_output",
    "create_spawn_command",
    "find_actual_executable",
    "get_process_tree_info",
    "kill_process_tree",
    "spawn",
    "spawn_detached",
    "spawn_detached_output",
    "spawn_detached_split_output",
    "spawn_output",
    "spawn_run",
    "spawn_split_output",
]
