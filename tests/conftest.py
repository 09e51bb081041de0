"""Shared fixtures and in-memory fakes of the Modal sandbox capabilities."""

from __future__ import annotations

import posixpath
import shlex
from dataclasses import dataclass
from typing import Callable

import pytest

from modalbox.config import Credentials, ModalConfig
from modalbox.providers.sandbox import ModalProvider


class FakeStream:
    def __init__(self, data: str) -> None:
        self._data = data

    def read(self) -> str:
        return self._data


class FakeProcess:
    def __init__(self, stdout: str = "", stderr: str = "", returncode: int = 0) -> None:
        self.stdout = FakeStream(stdout)
        self.stderr = FakeStream(stderr)
        self.returncode = returncode

    def wait(self) -> int:
        return self.returncode


class FakeFile:
    def __init__(self, sandbox: "FakeSandbox", path: str, mode: str) -> None:
        self._sandbox = sandbox
        self._path = path
        self._mode = mode
        self.closed = False

    def read(self) -> str:
        if self._path not in self._sandbox.files:
            raise FileNotFoundError(self._path)
        return self._sandbox.files[self._path]

    def write(self, data: str) -> int:
        self._sandbox.files[self._path] = data
        return len(data)

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeTunnel:
    url: str


class FakeSandbox:
    """Capability double with an in-memory filesystem and a tiny shell."""

    def __init__(
        self,
        object_id: str = "sb-fake",
        file_api: bool = True,
        poll_result: int | None = None,
        tunnels: dict[int, FakeTunnel] | None = None,
    ) -> None:
        self.object_id = object_id
        self.file_api = file_api
        self.poll_result = poll_result
        self._tunnels = tunnels or {}
        self.files: dict[str, str] = {}
        self.dirs: set[str] = {"/", "/tmp"}
        self.commands: list[tuple[str, ...]] = []
        self.handlers: dict[str, Callable[..., FakeProcess]] = {}
        self.terminated = False
        self.terminate_calls = 0
        self.tags: dict[str, str] = {}

    def exec(self, *args: str) -> FakeProcess:
        self.commands.append(args)
        if self.terminated:
            raise RuntimeError(f"Sandbox {self.object_id} has already finished")
        program = args[0]
        if program in self.handlers:
            return self.handlers[program](*args)
        runner = getattr(self, f"_run_{program.replace('3', '')}", None)
        if runner is None:
            return FakeProcess(stderr=f"sh: 1: {program}: not found\n", returncode=127)
        return runner(*args[1:])

    def open(self, path: str, mode: str = "r") -> FakeFile:
        if not self.file_api:
            raise RuntimeError("file API unavailable")
        return FakeFile(self, path, mode)

    def poll(self) -> int | None:
        return self.poll_result

    def tunnels(self) -> dict[int, FakeTunnel]:
        return self._tunnels

    def terminate(self) -> None:
        self.terminate_calls += 1
        self.terminated = True

    def set_tags(self, tags: dict[str, str]) -> None:
        self.tags = dict(tags)

    def get_tags(self) -> dict[str, str]:
        return dict(self.tags)

    def _exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    def _run_cat(self, *args: str) -> FakeProcess:
        path = args[-1]
        if path not in self.files:
            return FakeProcess(stderr=f"cat: {path}: No such file or directory\n", returncode=1)
        return FakeProcess(stdout=self.files[path])

    def _run_test(self, flag: str, path: str) -> FakeProcess:
        return FakeProcess(returncode=0 if self._exists(path) else 1)

    def _run_mkdir(self, *args: str) -> FakeProcess:
        path = args[-1]
        if path in self.files:
            return FakeProcess(stderr=f"mkdir: {path}: File exists\n", returncode=1)
        while path not in ("", "/"):
            self.dirs.add(path)
            path = posixpath.dirname(path)
        return FakeProcess()

    def _run_rm(self, *args: str) -> FakeProcess:
        path = args[-1]
        prefix = path.rstrip("/") + "/"
        self.files = {
            name: data
            for name, data in self.files.items()
            if name != path and not name.startswith(prefix)
        }
        self.dirs = {name for name in self.dirs if name != path and not name.startswith(prefix)}
        return FakeProcess()

    def _run_ls(self, *args: str) -> FakeProcess:
        path = args[-1]
        if path not in self.dirs:
            return FakeProcess(
                stderr=f"ls: cannot access '{path}': No such file or directory\n",
                returncode=2,
            )
        lines = [
            "total 8",
            "drwxr-xr-x 2 root root 4096 Jan 15 10:30 .",
            "drwxr-xr-x 3 root root 4096 Jan 15 10:30 ..",
        ]
        for name in sorted(self.dirs):
            if name != path and posixpath.dirname(name) == path:
                lines.append(
                    f"drwxr-xr-x 2 root root 4096 Jan 15 10:30 {posixpath.basename(name)}"
                )
        for name, data in sorted(self.files.items()):
            if posixpath.dirname(name) == path:
                size = len(data.encode("utf-8"))
                lines.append(
                    f"-rw-r--r-- 1 root root {size} Jan 15 10:30 {posixpath.basename(name)}"
                )
        return FakeProcess(stdout="\n".join(lines) + "\n")

    def _run_sh(self, flag: str, script: str) -> FakeProcess:
        tokens = shlex.split(script)
        if len(tokens) == 5 and tokens[0] == "printf" and tokens[3] == ">":
            self.files[tokens[4]] = tokens[2]
            return FakeProcess()
        if len(tokens) > 3 and tokens[0] == "cd" and tokens[2] == "&&":
            if tokens[1] not in self.dirs:
                return FakeProcess(stderr=f"sh: 1: cd: can't cd to {tokens[1]}\n", returncode=2)
            tokens = tokens[3:]
        while tokens and "=" in tokens[0] and not tokens[0].startswith("="):
            tokens.pop(0)
        if not tokens:
            return FakeProcess()
        if tokens[0] == "echo":
            return FakeProcess(stdout=" ".join(tokens[1:]) + "\n")
        if tokens[0] == "exit":
            return FakeProcess(returncode=int(tokens[1]))
        return self.exec(*tokens)

    def _run_node(self, flag: str, code: str) -> FakeProcess:
        return FakeProcess()

    def _run_python(self, flag: str, code: str) -> FakeProcess:
        return FakeProcess()


class FakeGateway:
    """Stands in for ``ModalGateway``; records every call it receives."""

    def __init__(self) -> None:
        self.sandboxes: dict[str, FakeSandbox] = {}
        self.create_calls: list[dict] = []
        self.bound: list[tuple[Credentials, str | None]] = []
        self.create_error: Exception | None = None

    def bind(self, credentials: Credentials, environment: str | None = None) -> "FakeGateway":
        self.bound.append((credentials, environment))
        return self

    def create_sandbox(self, image, timeout=None, ports=None) -> FakeSandbox:
        self.create_calls.append({"image": image, "timeout": timeout, "ports": ports})
        if self.create_error is not None:
            raise self.create_error
        sandbox = FakeSandbox(object_id=f"sb-{len(self.create_calls)}")
        self.sandboxes[sandbox.object_id] = sandbox
        return sandbox

    def from_id(self, sandbox_id: str) -> FakeSandbox:
        if sandbox_id not in self.sandboxes:
            raise RuntimeError(f"Sandbox with id {sandbox_id} not found")
        return self.sandboxes[sandbox_id]


@pytest.fixture
def sandbox() -> FakeSandbox:
    return FakeSandbox()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config() -> ModalConfig:
    return ModalConfig(token_id="ak-test", token_secret="as-test")


@pytest.fixture
def provider(config: ModalConfig, gateway: FakeGateway) -> ModalProvider:
    return ModalProvider(config, gateway_factory=gateway.bind)
