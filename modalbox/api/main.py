from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from modalbox.config import load_config
from modalbox.errors import ErrorCategory, NotFoundError, SandboxError
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
from modalbox.providers.sandbox import ModalProvider

app = FastAPI(title="modalbox")

STATUS_CODES = {
    ErrorCategory.AUTH: 401,
    ErrorCategory.QUOTA: 429,
    ErrorCategory.SYNTAX: 422,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.GENERIC: 502,
}


class CreateSandboxRequest(BaseModel):
    sandbox_id: Optional[str] = None
    image: Optional[str] = None
    ports: Optional[list[int]] = None
    timeout: Optional[int] = None


class RunCodeRequest(BaseModel):
    code: str
    runtime: Optional[Runtime] = None


class RunCommandRequest(BaseModel):
    command: str
    env: Optional[dict[str, str]] = None
    cwd: Optional[str] = None
    background: bool = False


class WriteFileRequest(BaseModel):
    content: str


@lru_cache
def get_provider() -> ModalProvider:
    return ModalProvider(load_config())


def _require_handle(provider: ModalProvider, sandbox_id: str) -> SandboxHandle:
    handle = provider.get_sandbox(sandbox_id)
    if handle is None:
        raise NotFoundError(f"Sandbox {sandbox_id} not found")
    return handle


@app.exception_handler(SandboxError)
async def handle_sandbox_error(request: Request, exc: SandboxError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_CODES[exc.category],
        content={"error": exc.category.value, "message": exc.message},
    )


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.post("/sandboxes", status_code=201)
def create_sandbox(
    body: CreateSandboxRequest, provider: ModalProvider = Depends(get_provider)
) -> SandboxInfo:
    handle = provider.create_sandbox(
        CreateSandboxOptions(
            sandbox_id=body.sandbox_id,
            image=body.image,
            ports=body.ports,
            timeout=body.timeout,
        )
    )
    return provider.get_info(handle)


@app.get("/sandboxes/{sandbox_id}")
def get_sandbox(
    sandbox_id: str, provider: ModalProvider = Depends(get_provider)
) -> SandboxInfo:
    return provider.get_info(_require_handle(provider, sandbox_id))


@app.delete("/sandboxes/{sandbox_id}", status_code=204)
def delete_sandbox(
    sandbox_id: str, provider: ModalProvider = Depends(get_provider)
) -> Response:
    provider.delete_sandbox(sandbox_id)
    return Response(status_code=204)


@app.post("/sandboxes/{sandbox_id}/code")
def run_code(
    sandbox_id: str,
    body: RunCodeRequest,
    provider: ModalProvider = Depends(get_provider),
) -> CodeResult:
    handle = _require_handle(provider, sandbox_id)
    return provider.run_code(handle, body.code, body.runtime)


@app.post("/sandboxes/{sandbox_id}/commands")
def run_command(
    sandbox_id: str,
    body: RunCommandRequest,
    provider: ModalProvider = Depends(get_provider),
) -> ExecResult:
    handle = _require_handle(provider, sandbox_id)
    options = CommandOptions(env=body.env, cwd=body.cwd, background=body.background)
    return provider.exec(handle, body.command, options)


@app.get("/sandboxes/{sandbox_id}/url")
def get_url(
    sandbox_id: str,
    port: int,
    protocol: Optional[str] = None,
    provider: ModalProvider = Depends(get_provider),
) -> dict:
    handle = _require_handle(provider, sandbox_id)
    return {"url": provider.get_preview_link(handle, port, protocol)}


@app.get("/sandboxes/{sandbox_id}/files")
def read_file(
    sandbox_id: str, path: str, provider: ModalProvider = Depends(get_provider)
) -> dict:
    handle = _require_handle(provider, sandbox_id)
    return {"path": path, "content": provider.read_file(handle, path)}


@app.put("/sandboxes/{sandbox_id}/files", status_code=204)
def write_file(
    sandbox_id: str,
    path: str,
    body: WriteFileRequest,
    provider: ModalProvider = Depends(get_provider),
) -> Response:
    provider.write_file(_require_handle(provider, sandbox_id), path, body.content)
    return Response(status_code=204)


@app.delete("/sandboxes/{sandbox_id}/files", status_code=204)
def remove_file(
    sandbox_id: str, path: str, provider: ModalProvider = Depends(get_provider)
) -> Response:
    provider.remove(_require_handle(provider, sandbox_id), path)
    return Response(status_code=204)


@app.get("/sandboxes/{sandbox_id}/files/exists")
def file_exists(
    sandbox_id: str, path: str, provider: ModalProvider = Depends(get_provider)
) -> dict:
    handle = _require_handle(provider, sandbox_id)
    return {"path": path, "exists": provider.exists(handle, path)}


@app.get("/sandboxes/{sandbox_id}/directories")
def list_directory(
    sandbox_id: str, path: str, provider: ModalProvider = Depends(get_provider)
) -> list[FileEntry]:
    return list(provider.list_files(_require_handle(provider, sandbox_id), path))


@app.post("/sandboxes/{sandbox_id}/directories", status_code=204)
def make_directory(
    sandbox_id: str, path: str, provider: ModalProvider = Depends(get_provider)
) -> Response:
    provider.mkdirs(_require_handle(provider, sandbox_id), path)
    return Response(status_code=204)
