"""FastAPI application exposing the credential wallet.

Endpoints:
  POST   /rpc      -- JSON-RPC style call: {jsonrpc, id, method, params}
  GET    /health   -- Health check

RPC methods: saveCredential, queryCredentials, deleteCredential,
clearCredentials, createCredential, createPresentation, getCredentialStore,
setCredentialStore. Results are tagged ({success, data} / {success, error}).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from pydantic import BaseModel

import credwallet
from credwallet.api.rpc import dispatch
from credwallet.config import settings
from credwallet.core.service import create_service
from credwallet.logging_config import log_startup_info, setup_logging
from credwallet.providers import (
    JsonRpcAccountProvider,
    JsonRpcClient,
    JsonRpcSessionAuthorizer,
    PolicyConsent,
)
from credwallet.storage.state import HolderStateStore

logger = logging.getLogger("credwallet")

_STARTUP_TIME: float = 0.0

_state = HolderStateStore(settings.state_path, key=settings.state_key_bytes)
_signer = JsonRpcClient(settings.signer_url, timeout=settings.remote_timeout)
_service = create_service(
    _state,
    JsonRpcAccountProvider(_signer),
    JsonRpcSessionAuthorizer(_signer),
    PolicyConsent(allow=settings.consent_policy == "allow"),
    remote_url=settings.remote_url,
    remote_alias=settings.remote_alias,
    session_ttl_secs=settings.session_ttl_secs,
)


class RpcRequest(BaseModel):
    jsonrpc: str = "2.0"
    id: str | int | None = None
    method: str
    params: Any = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _STARTUP_TIME
    _STARTUP_TIME = time.monotonic()
    setup_logging()
    await _state.connect(require_encryption=settings.require_encryption)
    await _service.initialize()
    log_startup_info()
    yield
    logger.info("Closing holder state and outbound clients")
    await _service.close()
    await _signer.close()
    await _state.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="credwallet",
    description="Verifiable Credential storage and EIP-712 signing for a holder wallet.",
    version=credwallet.__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Attach a request id and log each request with its duration."""
    request_id = request.headers.get("x-request-id") or uuid4().hex
    request.state.request_id = request_id
    start = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.debug(
        "%s %s -> %d",
        request.method,
        request.url.path,
        response.status_code,
        extra={"request_id": request_id, "duration_ms": round((time.perf_counter() - start) * 1000, 2)},
    )
    return response


@app.post("/rpc", tags=["RPC"])
async def rpc(body: RpcRequest, request: Request) -> dict[str, Any]:
    logger.info(
        "RPC %s",
        body.method,
        extra={"method": body.method, "request_id": getattr(request.state, "request_id", None)},
    )
    result = await dispatch(_service, body.method, body.params)
    return {"jsonrpc": body.jsonrpc, "id": body.id, "result": result}


@app.get("/health", tags=["Health"])
async def health() -> dict[str, Any]:
    uptime = time.monotonic() - _STARTUP_TIME if _STARTUP_TIME else 0.0
    return {"status": "ok", "version": credwallet.__version__, "uptime_seconds": round(uptime, 1)}
