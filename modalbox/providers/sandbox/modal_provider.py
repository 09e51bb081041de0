"""Modal sandbox provider."""

from __future__ import annotations

from typing import Any, Sequence

from modalbox.config import ModalConfig
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
from modalbox.providers.sandbox import execution, filesystem
from modalbox.providers.sandbox.base import SandboxProvider
from modalbox.providers.sandbox.lifecycle import (
    GatewayFactory,
    ModalGateway,
    SandboxLifecycle,
)


class ModalProvider(SandboxProvider):
    name = "modal"

    def __init__(
        self,
        config: ModalConfig | None = None,
        gateway_factory: GatewayFactory = ModalGateway,
    ) -> None:
        self._config = config or ModalConfig()
        self._lifecycle = SandboxLifecycle(self._config, gateway_factory)

    def create_sandbox(
        self, options: CreateSandboxOptions | None = None
    ) -> SandboxHandle:
        return self._lifecycle.create(options or CreateSandboxOptions())

    def get_sandbox(self, sandbox_id: str) -> SandboxHandle | None:
        return self._lifecycle.reconnect(sandbox_id)

    def list_sandboxes(self) -> Sequence[SandboxHandle]:
        return self._lifecycle.list_sandboxes()

    def delete_sandbox(self, sandbox_id: str) -> None:
        self._lifecycle.destroy(sandbox_id)

    def get_instance(self, handle: SandboxHandle) -> Any:
        """Return the underlying Modal ``Sandbox`` object."""
        return handle.sandbox

    def run_code(
        self, handle: SandboxHandle, code: str, runtime: Runtime | None = None
    ) -> CodeResult:
        return execution.run_code(
            handle, code, runtime, provision=self._lifecycle.provision
        )

    def exec(
        self,
        handle: SandboxHandle,
        command: str,
        options: CommandOptions | None = None,
    ) -> ExecResult:
        return execution.run_command(handle, command, options)

    def get_info(self, handle: SandboxHandle) -> SandboxInfo:
        return self._lifecycle.get_info(handle)

    def get_preview_link(
        self, handle: SandboxHandle, port: int, protocol: str | None = None
    ) -> str:
        return self._lifecycle.get_url(handle, port, protocol)

    def read_file(self, handle: SandboxHandle, path: str) -> str:
        return filesystem.read_file(handle.sandbox, path)

    def write_file(self, handle: SandboxHandle, path: str, content: str) -> None:
        filesystem.write_file(handle.sandbox, path, content)

    def mkdirs(self, handle: SandboxHandle, path: str) -> None:
        filesystem.mkdir(handle.sandbox, path)

    def list_files(self, handle: SandboxHandle, path: str) -> Sequence[FileEntry]:
        return filesystem.readdir(handle.sandbox, path)

    def exists(self, handle: SandboxHandle, path: str) -> bool:
        return filesystem.exists(handle.sandbox, path)

    def remove(self, handle: SandboxHandle, path: str) -> None:
        filesystem.remove(handle.sandbox, path)
