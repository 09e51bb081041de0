"""Sandbox provider interface and the remote capabilities it relies on."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from modalbox.models.sandbox import (
    CodeResult,
    CommandOptions,
    CreateSandboxOptions,
    ExecResult,
    FileEntry,
    Runtime,
    SandboxHandle,
    SandboxInfo,
)


class OutputStream(Protocol):
    def read(self) -> str | bytes:
        ...


class RemoteProcess(Protocol):
    stdout: OutputStream
    stderr: OutputStream

    def wait(self) -> Optional[int]:
        ...


class RemoteFile(Protocol):
    def read(self) -> str | bytes:
        ...

    def write(self, data: str | bytes) -> Any:
        ...

    def close(self) -> None:
        ...


class Tunnel(Protocol):
    url: str


class SandboxCapability(Protocol):
    """What the provider needs from a remote sandbox object.

    Modal's ``Sandbox`` satisfies this; nothing else about its shape is
    assumed.
    """

    object_id: str

    def exec(self, *args: str, **kwargs: Any) -> RemoteProcess:
        ...

    def open(self, path: str, mode: str = "r") -> RemoteFile:
        ...

    def poll(self) -> Optional[int]:
        ...

    def tunnels(self) -> Mapping[int, Tunnel]:
        ...

    def terminate(self) -> None:
        ...

    def set_tags(self, tags: Mapping[str, str]) -> None:
        ...

    def get_tags(self) -> Mapping[str, str]:
        ...


class SandboxProvider(Protocol):
    def create_sandbox(
        self, options: CreateSandboxOptions | None = None
    ) -> SandboxHandle:
        ...

    def get_sandbox(self, sandbox_id: str) -> SandboxHandle | None:
        ...

    def list_sandboxes(self) -> Sequence[SandboxHandle]:
        ...

    def delete_sandbox(self, sandbox_id: str) -> None:
        ...

    def run_code(
        self, handle: SandboxHandle, code: str, runtime: Runtime | None = None
    ) -> CodeResult:
        ...

    def exec(
        self,
        handle: SandboxHandle,
        command: str,
        options: CommandOptions | None = None,
    ) -> ExecResult:
        ...

    def get_info(self, handle: SandboxHandle) -> SandboxInfo:
        ...

    def get_preview_link(
        self, handle: SandboxHandle, port: int, protocol: str | None = None
    ) -> str:
        ...

    def read_file(self, handle: SandboxHandle, path: str) -> str:
        ...

    def write_file(self, handle: SandboxHandle, path: str, content: str) -> None:
        ...

    def mkdirs(self, handle: SandboxHandle, path: str) -> None:
        ...

    def list_files(self, handle: SandboxHandle, path: str) -> Sequence[FileEntry]:
        ...

    def exists(self, handle: SandboxHandle, path: str) -> bool:
        ...

    def remove(self, handle: SandboxHandle, path: str) -> None:
        ...
