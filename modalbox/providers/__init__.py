"""Provider package for the Modal sandbox integration."""

from modalbox.providers.sandbox import ModalProvider, SandboxProvider

__all__ = [
    "ModalProvider",
    "SandboxProvider",
]
