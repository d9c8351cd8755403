# =============================
# backend/cwm_bridge/main.py (app factory)
# =============================
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import CONTEXT_SWEEP_SEC, CORS_ORIGINS, HOST, LOG_LEVEL, PORT
from .context.registry import ContextSweeper, registry
from .context.router import bootstrapper, router as context_router
from .errors import BridgeError, redact
from .routes.health import router as health_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = ContextSweeper(registry, CONTEXT_SWEEP_SEC)
    sweeper.start()
    logger.info("MCP ConnectWise Manage API Server running on port %s", PORT)
    yield
    sweeper.stop()


app = FastAPI(title="CWM_BRIDGE", version=__version__, lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=CORS_ORIGINS, allow_methods=["*"], allow_headers=["*"])
app.include_router(health_router)
app.include_router(context_router)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": redact(message, bootstrapper.secrets())})


@app.exception_handler(BridgeError)
async def bridge_error_handler(request: Request, exc: BridgeError):
    logger.error("%s %s failed: %s", request.method, request.url.path, redact(exc.message, bootstrapper.secrets()))
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(500, "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc) or "Internal server error")


def run():
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
