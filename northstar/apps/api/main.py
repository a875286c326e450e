"""FastAPI application entrypoint for NorthStar."""

from __future__ import annotations

from northstar.libs.logging_utils import configure_logging

configure_logging()

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from northstar.apps.api.deps import get_orchestrator
from northstar.apps.api.routes.ai import router as ai_router
from northstar.apps.api.services.orchestrator import Orchestrator
from northstar.libs.memory import MemoryStoreError
from northstar.libs.schemas import close_async_pool, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        await close_async_pool()


app = FastAPI(title=f"{get_settings().app_name} AI", version="0.1.0", lifespan=lifespan)
app.include_router(ai_router)


@app.exception_handler(MemoryStoreError)
async def memory_store_error_handler(request: Request, exc: MemoryStoreError) -> JSONResponse:
    logger.error("memory_store_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(
        status_code=503,
        content={"ok": False, "error": "memory_unavailable", "message": str(exc)},
    )


@app.get("/health")
async def health(orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    router = orchestrator.router
    breakers = router.resilience.snapshot() if router is not None else {}
    return {"status": "ok", "breakers": breakers}


__all__ = ["app"]
