"""Configuration for the Modal sandbox provider."""

from __future__ import annotations

import importlib
import importlib.util
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from modalbox.models.sandbox import Runtime

# Modal app that owns every sandbox this service provisions
APP_NAME = "modalbox"

DEFAULT_IMAGE = "node:20"
RUNTIME_IMAGES = {
    Runtime.NODE: "node:20",
    Runtime.PYTHON: "python:3.13-slim",
}

# Sandbox tag holding the runtime a session was created for
RUNTIME_TAG = "modalbox-runtime"

# Reported by get_info when no timeout was requested (Modal's own default)
DEFAULT_TIMEOUT_S = 300

TOKEN_ID_ENV = "MODAL_TOKEN_ID"
TOKEN_SECRET_ENV = "MODAL_TOKEN_SECRET"
CONFIG_PATH_ENV = "MODALBOX_CONFIG"
DEFAULT_CONFIG_PATH = "config/modal.yaml"


@dataclass(frozen=True)
class Credentials:
    token_id: str
    token_secret: str


@dataclass
class ModalConfig:
    token_id: Optional[str] = None
    token_secret: Optional[str] = None
    runtime: Optional[Runtime] = None
    # Seconds, applied to the remote sandbox at creation time
    timeout: Optional[int] = None
    environment: Optional[str] = None
    ports: list[int] = field(default_factory=list)


def resolve_credentials(config: ModalConfig) -> Optional[Credentials]:
    """Return credentials from explicit config, falling back to the environment.

    Each field is resolved independently, so a config carrying only the token
    id still picks the secret up from ``MODAL_TOKEN_SECRET``. Returns ``None``
    when either half is missing.
    """
    token_id = config.token_id or os.getenv(TOKEN_ID_ENV) or ""
    token_secret = config.token_secret or os.getenv(TOKEN_SECRET_ENV) or ""
    if not token_id or not token_secret:
        return None
    return Credentials(token_id=token_id, token_secret=token_secret)


def load_config(path: str | None = None) -> ModalConfig:
    config_path = Path(path or os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        return ModalConfig()
    yaml_spec = importlib.util.find_spec("yaml")
    if yaml_spec is None:
        raise RuntimeError("PyYAML is required to load the modalbox config file.")
    yaml = importlib.import_module("yaml")
    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    section = data.get("modal", {})
    if not isinstance(section, dict):
        return ModalConfig()
    return _config_from_mapping(section)


def _config_from_mapping(section: dict[str, Any]) -> ModalConfig:
    runtime = section.get("runtime")
    timeout = section.get("timeout")
    return ModalConfig(
        token_id=section.get("token_id"),
        token_secret=section.get("token_secret"),
        runtime=Runtime(runtime) if runtime else None,
        timeout=int(timeout) if timeout is not None else None,
        environment=section.get("environment"),
        ports=[int(port) for port in section.get("ports") or []],
    )
