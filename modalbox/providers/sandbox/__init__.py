"""Sandbox provider implementations and interfaces."""

from modalbox.providers.sandbox.base import SandboxCapability, SandboxProvider
from modalbox.providers.sandbox.lifecycle import ModalGateway
from modalbox.providers.sandbox.modal_provider import ModalProvider
from modalbox.providers.sandbox.runtime import detect_runtime

__all__ = [
    "ModalGateway",
    "ModalProvider",
    "SandboxCapability",
    "SandboxProvider",
    "detect_runtime",
]
