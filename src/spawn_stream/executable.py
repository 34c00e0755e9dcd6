"""Executable resolution.

Maps a requested executable and its arguments to the command the OS launch
primitive can actually run. Windows does not search PATH when spawning and
cannot run scripts directly, so resolution searches PATH itself and
dispatches ``.ps1``/``.bat``/``.cmd``/``.py`` files to their interpreters.
"""

from __future__ import annotations

import logging
import ntpath
import os
import posixpath
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Tried in order when a bare name does not exist on Windows
WINDOWS_EXTENSIONS = (".exe", ".bat", ".cmd", ".ps1")

POWERSHELL_FLAGS = ("-ExecutionPolicy", "Unrestricted", "-NoLogo", "-NonInteractive", "-File")

ExistsCheck = Callable[[str], bool]


class ResolvedCommand(NamedTuple):
    """A concrete command: ``cmd`` is launchable, ``args`` excludes it."""

    cmd: str
    args: tuple[str, ...]


def file_exists(path: str) -> bool:
    """stat a file but treat any error as "does not exist"."""
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def _is_windows(is_windows: bool | None) -> bool:
    return sys.platform == "win32" if is_windows is None else is_windows


def run_down_path(
    exe: str,
    *,
    is_windows: bool | None = None,
    environ: Mapping[str, str] | None = None,
    exists: ExistsCheck = file_exists,
) -> str:
    """Search the current directory, then PATH, for ``exe``.

    Returns the first existing candidate, or ``exe`` unchanged when nothing
    matched. Names that already contain a directory separator are returned as is.
    """
    windows = _is_windows(is_windows)
    pathmod = ntpath if windows else posixpath
    env = os.environ if environ is None else environ

    if "/" in exe or "\\" in exe:
        logger.debug("Path has a directory separator, not searching: %s", exe)
        return exe

    # args[0] matters to some programs, so candidates are never realpath()'d
    target = pathmod.join(".", exe)
    if exists(target):
        logger.debug("Found executable in current directory: %s", target)
        return target

    for entry in env.get("PATH", "").split(";" if windows else ":"):
        if not entry:
            continue
        needle = pathmod.join(entry, exe)
        if exists(needle):
            return needle

    logger.debug("Failed to find executable anywhere in path: %s", exe)
    return exe


def _dispatch_by_extension(
    exe: str,
    args: Sequence[str],
    environ: Mapping[str, str],
) -> ResolvedCommand:
    lowered = exe.lower()
    system_root = environ.get("SYSTEMROOT", r"C:\Windows")

    if lowered.endswith(".ps1"):
        cmd = ntpath.join(system_root, "System32", "WindowsPowerShell", "v1.0", "PowerShell.exe")
        return ResolvedCommand(cmd, (*POWERSHELL_FLAGS, exe, *args))

    if lowered.endswith((".bat", ".cmd")):
        cmd = ntpath.join(system_root, "System32", "cmd.exe")
        return ResolvedCommand(cmd, ("/C", exe, *args))

    if lowered.endswith(".py"):
        return ResolvedCommand(sys.executable, (exe, *args))

    return ResolvedCommand(exe, tuple(args))


def find_actual_executable(
    exe: str,
    args: Sequence[str] = (),
    *,
    is_windows: bool | None = None,
    environ: Mapping[str, str] | None = None,
    exists: ExistsCheck = file_exists,
) -> ResolvedCommand:
    """Find the actual executable and arguments to run.

    On POSIX the only work is the PATH search. On Windows this also mimics
    the POSIX ability to run scripts as executables by substituting the
    script host (PowerShell, cmd, or this Python interpreter) and tries the
    usual executable extensions when the bare name does not exist.

    Never fails: when nothing matches, ``exe`` and ``args`` come back unchanged.

    Args:
        exe: The executable to run.
        args: The arguments to run it with.
        is_windows: Override platform detection.
        environ: Environment to read PATH and SYSTEMROOT from. Defaults to os.environ.
        exists: Filesystem existence check.

    Returns:
        The resolved command.
    """
    windows = _is_windows(is_windows)
    env = os.environ if environ is None else environ

    if not windows:
        return ResolvedCommand(run_down_path(exe, is_windows=False, environ=env, exists=exists), tuple(args))

    if not exists(exe):
        # A bare name like ``surf-build`` passed as an argument never gets the
        # shell's .cmd lookup, so try the extensions ourselves
        for ext in WINDOWS_EXTENSIONS:
            candidate = run_down_path(f"{exe}{ext}", is_windows=True, environ=env, exists=exists)
            if exists(candidate):
                return _dispatch_by_extension(candidate, args, env)

    return _dispatch_by_extension(exe, args, env)


def find_jobber_executable() -> str:
    """Locate the vendored Jobber helper used for detached processes on Windows."""
    candidates = [
        Path(__file__).parent / "vendor" / "jobber" / "Jobber.exe",
        Path.cwd() / "vendor" / "jobber" / "Jobber.exe",
        Path.cwd().parent / "vendor" / "jobber" / "Jobber.exe",
    ]
    for candidate in candidates:
        if file_exists(str(candidate)):
            return str(candidate)
    return str(candidates[0])
