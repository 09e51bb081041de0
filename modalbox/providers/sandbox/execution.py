"""Code and shell command execution inside a Modal sandbox."""

from __future__ import annotations

import logging
import re
import shlex
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from modalbox.errors import (
    SandboxError,
    apply_failure_policy,
    has_syntax_error,
    syntax_error,
)
from modalbox.models.sandbox import (
    CodeResult,
    CommandOptions,
    ExecResult,
    Runtime,
    SandboxHandle,
)
from modalbox.providers.sandbox.base import SandboxCapability
from modalbox.providers.sandbox.lifecycle import terminate_quietly
from modalbox.providers.sandbox.runtime import detect_runtime

logger = logging.getLogger(__name__)

INTERPRETERS: dict[Runtime, tuple[str, str]] = {
    Runtime.NODE: ("node", "-e"),
    Runtime.PYTHON: ("python3", "-c"),
}

# Exit status reported when the command never produced one
EXIT_NOT_RUN = 127

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _decode(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def execute(sandbox: SandboxCapability, argv: Sequence[str]) -> ExecResult:
    """Run ``argv`` in ``sandbox`` and collect both output streams.

    stdout and stderr are drained on separate threads and joined before the
    exit status is requested. A process blocked writing one stream would
    otherwise stall a reader waiting on the other.
    """
    start = time.monotonic()
    process = sandbox.exec(*argv)
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="modal_drain") as pool:
        stdout_future = pool.submit(process.stdout.read)
        stderr_future = pool.submit(process.stderr.read)
        stdout = _decode(stdout_future.result())
        stderr = _decode(stderr_future.result())
    exit_code = process.wait()
    if exit_code is None:
        exit_code = getattr(process, "returncode", None)
    return ExecResult(
        exit_code=exit_code or 0,
        stdout=stdout,
        stderr=stderr,
        duration_ms=_elapsed_ms(start),
    )


def build_command(command: str, options: CommandOptions | None = None) -> str:
    """Layer env, cwd and background wrappers around ``command``.

    Values and paths are shell-quoted; environment variable names must be
    plain identifiers.
    """
    if options is None:
        return command
    full_command = command
    if options.env:
        for name in options.env:
            if not _ENV_NAME.match(name):
                raise ValueError(f"Invalid environment variable name: {name!r}")
        prefix = " ".join(
            f"{name}={shlex.quote(value)}" for name, value in options.env.items()
        )
        full_command = f"{prefix} {full_command}"
    if options.cwd:
        full_command = f"cd {shlex.quote(options.cwd)} && {full_command}"
    if options.background:
        full_command = f"nohup sh -c {shlex.quote(full_command)} > /dev/null 2>&1 &"
    return full_command


def run_command(
    handle: SandboxHandle, command: str, options: CommandOptions | None = None
) -> ExecResult:
    """Run a shell command; failures are returned as exit code 127, never raised."""
    start = time.monotonic()
    try:
        full_command = build_command(command, options)
        logger.debug(f"Sandbox {handle.sandbox_id}: running {full_command!r}")
        result = execute(handle.sandbox, ["sh", "-c", full_command])
    except Exception as exc:
        return ExecResult(
            exit_code=EXIT_NOT_RUN,
            stdout="",
            stderr=apply_failure_policy("run_command", exc),
            duration_ms=_elapsed_ms(start),
        )
    return ExecResult(
        exit_code=result.exit_code,
        stdout=result.stdout,
        stderr=result.stderr,
        duration_ms=_elapsed_ms(start),
    )


def run_code(
    handle: SandboxHandle,
    code: str,
    runtime: Runtime | None = None,
    provision: Optional[Callable[[Runtime], SandboxCapability]] = None,
) -> CodeResult:
    """Run ``code`` with the interpreter for its runtime.

    The handle's own sandbox is used when its runtime matches; otherwise a
    temporary sandbox is provisioned for the run and terminated afterwards.
    A non-zero exit with a syntax error in stderr raises ``CodeSyntaxError``.
    Any other exit status is returned as data.
    """
    start = time.monotonic()
    resolved = runtime or detect_runtime(code)
    executable, flag = INTERPRETERS[resolved]
    auxiliary: SandboxCapability | None = None
    try:
        target = handle.sandbox
        if resolved != handle.runtime:
            if provision is None:
                raise SandboxError(
                    f"No {resolved.value} sandbox available for {handle.sandbox_id}"
                )
            auxiliary = provision(resolved)
            target = auxiliary
            logger.debug(
                f"Sandbox {handle.sandbox_id}: running {resolved.value} code "
                "in a temporary sandbox"
            )
        result = execute(target, [executable, flag, code])
        if result.exit_code != 0 and has_syntax_error(result.stderr):
            raise syntax_error(result.stderr)
        return CodeResult(
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            duration_ms=_elapsed_ms(start),
            runtime=resolved,
        )
    except Exception as exc:
        return apply_failure_policy("run_code", exc)
    finally:
        if auxiliary is not None:
            terminate_quietly(auxiliary)
