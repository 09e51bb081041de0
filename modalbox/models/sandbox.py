"""Data models for sandbox interactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional


class Runtime(str, Enum):
    NODE = "node"
    PYTHON = "python"


FileType = Literal["file", "directory"]
SandboxStatus = Literal["running", "stopped", "error"]


@dataclass
class SandboxHandle:
    """Live reference to a remote Modal sandbox.

    ``sandbox`` is the SDK object backing the session and is only handed to
    the execution, filesystem and lifecycle layers.
    """

    sandbox_id: str
    sandbox: Any
    runtime: Runtime = Runtime.NODE
    created_at: datetime = field(default_factory=datetime.now)
    timeout: Optional[int] = None


@dataclass(frozen=True)
class CreateSandboxOptions:
    sandbox_id: Optional[str] = None
    image: Optional[str] = None
    ports: Optional[list[int]] = None
    timeout: Optional[int] = None


@dataclass(frozen=True)
class CommandOptions:
    env: Optional[dict[str, str]] = None
    cwd: Optional[str] = None
    background: bool = False


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class CodeResult(ExecResult):
    runtime: Runtime = Runtime.NODE

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        return self.stdout + self.stderr


@dataclass(frozen=True)
class FileEntry:
    name: str
    type: FileType
    size: int
    modified: datetime

    @property
    def is_dir(self) -> bool:
        return self.type == "directory"


@dataclass(frozen=True)
class SandboxInfo:
    id: str
    provider: str
    runtime: Runtime
    status: SandboxStatus
    created_at: datetime
    timeout: Optional[int]
    metadata: dict[str, Any] = field(default_factory=dict)
