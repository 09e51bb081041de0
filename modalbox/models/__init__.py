"""Shared data models for the modalbox service."""

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

__all__ = [
    "CodeResult",
    "CommandOptions",
    "CreateSandboxOptions",
    "ExecResult",
    "FileEntry",
    "Runtime",
    "SandboxHandle",
    "SandboxInfo",
]
