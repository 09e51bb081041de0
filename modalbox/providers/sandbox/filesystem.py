"""Filesystem operations with a shell fallback for Modal's file API.

Each operation is an ordered chain of strategies. Strategies run one at a
time until one succeeds; if all fail, the error from the first strategy is
the one reported.
"""

from __future__ import annotations

import logging
import shlex
from datetime import datetime
from typing import Any, Callable, Sequence, TypeVar

from modalbox.errors import apply_failure_policy
from modalbox.models.sandbox import ExecResult, FileEntry
from modalbox.providers.sandbox.base import SandboxCapability
from modalbox.providers.sandbox.execution import execute

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f")


def _check(result: ExecResult, utility: str) -> ExecResult:
    if result.exit_code != 0:
        raise RuntimeError(f"{utility} failed: {result.stderr.strip()}")
    return result


def _run_chain(
    operation: str,
    strategies: Sequence[Callable[..., T]],
    sandbox: SandboxCapability,
    path: str,
    *args: Any,
) -> T:
    first_error: Exception | None = None
    for strategy in strategies:
        try:
            return strategy(sandbox, path, *args)
        except Exception as exc:
            logger.debug(f"{operation} via {strategy.__name__} failed for {path}: {exc}")
            if first_error is None:
                first_error = exc
    return apply_failure_policy(operation, first_error, path=path)


def _read_via_file_api(sandbox: SandboxCapability, path: str) -> str:
    handle = sandbox.open(path, "r")
    try:
        data = handle.read()
    finally:
        handle.close()
    return data.decode("utf-8") if isinstance(data, bytes) else data


def _read_via_cat(sandbox: SandboxCapability, path: str) -> str:
    return _check(execute(sandbox, ["cat", "--", path]), "cat").stdout


def _write_via_file_api(sandbox: SandboxCapability, path: str, content: str) -> None:
    handle = sandbox.open(path, "w")
    try:
        handle.write(content)
    finally:
        handle.close()


def _write_via_printf(sandbox: SandboxCapability, path: str, content: str) -> None:
    script = f"printf '%s' {shlex.quote(content)} > {shlex.quote(path)}"
    _check(execute(sandbox, ["sh", "-c", script]), "write")


def _mkdir_via_shell(sandbox: SandboxCapability, path: str) -> None:
    _check(execute(sandbox, ["mkdir", "-p", "--", path]), "mkdir")


def _list_via_ls(sandbox: SandboxCapability, path: str) -> list[FileEntry]:
    return parse_ls_output(_check(execute(sandbox, ["ls", "-la", "--", path]), "ls").stdout)


def _test_exists(sandbox: SandboxCapability, path: str) -> bool:
    return execute(sandbox, ["test", "-e", path]).exit_code == 0


def _remove_via_shell(sandbox: SandboxCapability, path: str) -> None:
    _check(execute(sandbox, ["rm", "-rf", "--", path]), "rm")


def _parse_size(parts: list[str]) -> int:
    try:
        return max(int(parts[4]), 0)
    except (IndexError, ValueError):
        return 0


def _parse_timestamp(parts: list[str]) -> datetime:
    now = datetime.now()
    iso_text = " ".join(parts[5:7]).strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(iso_text, fmt)
        except ValueError:
            continue
    # Default listings: "Jan 15 10:30" within the last six months, "Jan 15 2023" otherwise
    text = " ".join(parts[5:8]).strip()
    try:
        return datetime.strptime(text, "%b %d %Y")
    except ValueError:
        pass
    try:
        stamp = datetime.strptime(f"{now.year} {text}", "%Y %b %d %H:%M")
    except ValueError:
        return now
    if stamp > now:
        try:
            stamp = stamp.replace(year=now.year - 1)
        except ValueError:
            return now
    return stamp


def parse_ls_output(output: str) -> list[FileEntry]:
    """Parse ``ls -la`` output into entries, skipping ``.`` and ``..``.

    Works for both GNU and BusyBox listings. Fields that do not parse fall
    back to size 0 and the current time.
    """
    entries: list[FileEntry] = []
    for line in output.split("\n")[1:]:
        if not line.strip():
            continue
        parts = line.split()
        name = " ".join(parts[8:]) or parts[-1]
        if name in (".", ".."):
            continue
        entries.append(
            FileEntry(
                name=name,
                type="directory" if parts[0].startswith("d") else "file",
                size=_parse_size(parts),
                modified=_parse_timestamp(parts),
            )
        )
    return entries


def read_file(sandbox: SandboxCapability, path: str) -> str:
    return _run_chain("read_file", (_read_via_file_api, _read_via_cat), sandbox, path)


def write_file(sandbox: SandboxCapability, path: str, content: str) -> None:
    _run_chain(
        "write_file", (_write_via_file_api, _write_via_printf), sandbox, path, content
    )


def mkdir(sandbox: SandboxCapability, path: str) -> None:
    _run_chain("mkdir", (_mkdir_via_shell,), sandbox, path)


def readdir(sandbox: SandboxCapability, path: str) -> list[FileEntry]:
    return _run_chain("readdir", (_list_via_ls,), sandbox, path)


def exists(sandbox: SandboxCapability, path: str) -> bool:
    return _run_chain("exists", (_test_exists,), sandbox, path)


def remove(sandbox: SandboxCapability, path: str) -> None:
    _run_chain("remove", (_remove_via_shell,), sandbox, path)
