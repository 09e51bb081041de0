"""Creation, reconnection and teardown of Modal sandboxes."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence
from urllib.parse import urlsplit

import modal

from modalbox.config import (
    APP_NAME,
    DEFAULT_IMAGE,
    DEFAULT_TIMEOUT_S,
    RUNTIME_IMAGES,
    RUNTIME_TAG,
    Credentials,
    ModalConfig,
    resolve_credentials,
)
from modalbox.errors import (
    MISSING_CREDENTIALS_MESSAGE,
    AuthenticationError,
    NotFoundError,
    UnsupportedOperationError,
    apply_failure_policy,
)
from modalbox.models.sandbox import (
    CreateSandboxOptions,
    Runtime,
    SandboxHandle,
    SandboxInfo,
)
from modalbox.providers.sandbox.base import SandboxCapability

logger = logging.getLogger(__name__)


class ModalGateway:
    """The only place that calls into the Modal SDK."""

    def __init__(self, credentials: Credentials, environment: str | None = None) -> None:
        self._credentials = credentials
        self._environment = environment
        self._client: Optional[modal.Client] = None
        self._app: Optional[modal.App] = None

    def _get_client(self) -> modal.Client:
        if self._client is None:
            self._client = modal.Client.from_credentials(
                self._credentials.token_id, self._credentials.token_secret
            )
        return self._client

    def _get_app(self) -> modal.App:
        if self._app is None:
            self._app = modal.App.lookup(
                APP_NAME,
                create_if_missing=True,
                client=self._get_client(),
                environment_name=self._environment,
            )
        return self._app

    def create_sandbox(
        self,
        image: str,
        timeout: int | None = None,
        ports: Sequence[int] | None = None,
    ) -> SandboxCapability:
        kwargs: dict[str, Any] = {}
        if ports:
            kwargs["unencrypted_ports"] = list(ports)
        if timeout:
            kwargs["timeout"] = timeout
        return modal.Sandbox.create(
            app=self._get_app(),
            image=modal.Image.from_registry(image),
            client=self._get_client(),
            **kwargs,
        )

    def from_id(self, sandbox_id: str) -> SandboxCapability:
        return modal.Sandbox.from_id(sandbox_id, client=self._get_client())


GatewayFactory = Callable[[Credentials, Optional[str]], ModalGateway]


def image_runtime(image: str, fallback: Runtime = Runtime.NODE) -> Runtime:
    """Runtime family of a registry image, by name."""
    for runtime, runtime_image in RUNTIME_IMAGES.items():
        if image == runtime_image:
            return runtime
    name = image.rsplit("/", 1)[-1]
    if name.startswith("python"):
        return Runtime.PYTHON
    if name.startswith("node"):
        return Runtime.NODE
    return fallback


def sandbox_runtime(sandbox: SandboxCapability, fallback: Runtime) -> Runtime:
    """Runtime tagged on ``sandbox`` at creation, or ``fallback`` if untagged."""
    try:
        value = sandbox.get_tags().get(RUNTIME_TAG)
    except Exception as exc:
        logger.debug(f"Could not read tags of sandbox {sandbox.object_id}: {exc}")
        return fallback
    if value in {runtime.value for runtime in Runtime}:
        return Runtime(value)
    return fallback


def terminate_quietly(sandbox: Any) -> None:
    """Terminate ``sandbox`` if it supports it; never raises."""
    try:
        terminate = getattr(sandbox, "terminate", None)
        if callable(terminate):
            terminate()
    except Exception as exc:
        apply_failure_policy("destroy", exc)


class SandboxLifecycle:
    def __init__(
        self, config: ModalConfig, gateway_factory: GatewayFactory = ModalGateway
    ) -> None:
        self._config = config
        self._gateway_factory = gateway_factory
        self._gateway: Optional[ModalGateway] = None

    @property
    def default_runtime(self) -> Runtime:
        return self._config.runtime or Runtime.NODE

    def _require_gateway(self) -> ModalGateway:
        if self._gateway is None:
            credentials = resolve_credentials(self._config)
            if credentials is None:
                raise AuthenticationError(MISSING_CREDENTIALS_MESSAGE)
            self._gateway = self._gateway_factory(credentials, self._config.environment)
        return self._gateway

    def create(self, options: CreateSandboxOptions) -> SandboxHandle:
        # Checked outside the policy so the message names both missing fields
        gateway = self._require_gateway()
        try:
            if options.sandbox_id:
                sandbox = gateway.from_id(options.sandbox_id)
                logger.info(f"Reconnected to sandbox {options.sandbox_id}")
                return SandboxHandle(
                    sandbox_id=options.sandbox_id,
                    sandbox=sandbox,
                    runtime=sandbox_runtime(sandbox, self.default_runtime),
                    timeout=self._config.timeout,
                )
            image = options.image or DEFAULT_IMAGE
            ports = options.ports if options.ports is not None else self._config.ports
            timeout = options.timeout or self._config.timeout
            runtime = image_runtime(image, self.default_runtime)
            sandbox = gateway.create_sandbox(image, timeout=timeout, ports=ports)
            try:
                sandbox.set_tags({RUNTIME_TAG: runtime.value})
            except Exception:
                terminate_quietly(sandbox)
                raise
            logger.info(f"Created sandbox {sandbox.object_id} from image {image}")
            return SandboxHandle(
                sandbox_id=sandbox.object_id,
                sandbox=sandbox,
                runtime=runtime,
                timeout=timeout,
            )
        except Exception as exc:
            return apply_failure_policy("create", exc)

    def reconnect(self, sandbox_id: str) -> SandboxHandle | None:
        try:
            sandbox = self._require_gateway().from_id(sandbox_id)
            if sandbox is None:
                raise NotFoundError(f"Sandbox {sandbox_id} not found")
        except Exception as exc:
            return apply_failure_policy("reconnect", exc)
        return SandboxHandle(
            sandbox_id=sandbox_id,
            sandbox=sandbox,
            runtime=sandbox_runtime(sandbox, self.default_runtime),
            timeout=self._config.timeout,
        )

    def provision(self, runtime: Runtime) -> SandboxCapability:
        """Start a bare sandbox for ``runtime``; the caller must terminate it."""
        return self._require_gateway().create_sandbox(RUNTIME_IMAGES[runtime])

    def destroy(self, sandbox_id: str) -> None:
        try:
            sandbox = self._require_gateway().from_id(sandbox_id)
            terminate = getattr(sandbox, "terminate", None)
            if callable(terminate):
                terminate()
                logger.info(f"Terminated sandbox {sandbox_id}")
        except Exception as exc:
            apply_failure_policy("destroy", exc)

    def list_sandboxes(self) -> list[SandboxHandle]:
        raise UnsupportedOperationError(
            "Modal provider does not support listing sandboxes. "
            "Reconnect to a specific sandbox by id instead."
        )

    def get_info(self, handle: SandboxHandle) -> SandboxInfo:
        try:
            exit_code = handle.sandbox.poll()
            if exit_code is None:
                status = "running"
            else:
                status = "stopped" if exit_code == 0 else "error"
        except Exception as exc:
            status = apply_failure_policy("get_info", exc)
        return SandboxInfo(
            id=handle.sandbox_id,
            provider="modal",
            runtime=handle.runtime,
            status=status,
            created_at=handle.created_at,
            timeout=handle.timeout or DEFAULT_TIMEOUT_S,
            metadata={"modal_sandbox_id": handle.sandbox_id, "app": APP_NAME},
        )

    def get_url(
        self, handle: SandboxHandle, port: int, protocol: str | None = None
    ) -> str:
        try:
            tunnels = handle.sandbox.tunnels()
            tunnel = tunnels.get(port)
            if tunnel is None:
                available = ", ".join(str(p) for p in sorted(tunnels)) or "none"
                raise NotFoundError(
                    f"No tunnel found for port {port}. Available ports: {available}"
                )
            url = tunnel.url
            if protocol:
                url = urlsplit(url)._replace(scheme=protocol.rstrip(":")).geturl()
            return url
        except Exception as exc:
            return apply_failure_policy("get_url", exc, port=port)
