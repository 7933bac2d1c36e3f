"""
Call Log - Fire Department Incident Log
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import config
from database import init_db
from errors import NotFoundError, UnauthorizedError, InvalidFilterError, LedgerWriteError
from routers import calls, users, picklists, settings

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Call Log starting up...")
    init_db()
    yield
    # Shutdown
    logger.info("Call Log shutting down...")


app = FastAPI(
    title="Call Log API",
    description="Fire department call logging",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ENGINE ERRORS -> HTTP
# =============================================================================

async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    # Bad credentials are turned into 401 by routers.acting before a gate runs
    return JSONResponse(status_code=403, content={"detail": str(exc)})


async def invalid_filter_handler(request: Request, exc: InvalidFilterError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def ledger_write_handler(request: Request, exc: LedgerWriteError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


app.add_exception_handler(NotFoundError, not_found_handler)
app.add_exception_handler(UnauthorizedError, unauthorized_handler)
app.add_exception_handler(InvalidFilterError, invalid_filter_handler)
app.add_exception_handler(LedgerWriteError, ledger_write_handler)

# Routers
app.include_router(calls.router, prefix="/api/calls", tags=["Calls"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(picklists.router, prefix="/api/picklists", tags=["Picklists"])
app.include_router(settings.router, prefix="/api/settings", tags=["Settings"])


@app.get("/")
async def root():
    return {"status": "ok", "service": "Call Log API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
