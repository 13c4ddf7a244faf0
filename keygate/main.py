#!/usr/bin/env python3
"""
Keygate - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules (TTL store, sessions, token table, key file)
3. Wires middleware and routes
4. Runs the API server

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keygate.logging_config import configure_logging, get_logging_config
from keygate.modules.auth import TokenTable
from keygate.modules.config import ConfigModule, get_config
from keygate.modules.keyfile import KeyFileError, KeyFileModule
from keygate.modules.metrics import MetricsMiddleware, metrics_response, record_expired
from keygate.modules.middleware import create_session_middleware
from keygate.modules.session import INVALID, SessionModule
from keygate.modules.storage import ExpiryReaper, TTLStore

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "PUT", "POST", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "X-Requested-With"]


def create_app(
    config: Optional[ConfigModule] = None,
    store: Optional[TTLStore[int]] = None,
    token_table: Optional[TokenTable] = None,
) -> FastAPI:
    """
    Build the Keygate application.

    The session store is constructed here, once per application, and shared
    through app.state; the expiry reaper runs for the lifetime of the app.

    Args:
        config: Configuration (defaults to the environment-backed singleton)
        store: Pre-built session store (tests inject one with a fake clock)
        token_table: Pre-built token table (defaults to config token_file/tokens)

    Raises:
        TokenTableError: If the token table cannot be loaded
    """
    config = config or get_config()
    store = store if store is not None else TTLStore(default_ttl=config.get("session_ttl"))
    if token_table is None:
        token_table = TokenTable.load(config.get("token_file"), config.get("tokens"))

    session_module = SessionModule(store)
    key_files = KeyFileModule(config.get("key_file"), config.get("backup_dir"))
    reaper = ExpiryReaper(store, interval=config.get("sweep_interval"), on_expired=record_expired)
    cookie_name = config.get("cookie_name")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle - start and stop the expiry reaper.
        """
        logger.info("Starting Keygate...")
        reaper.start()
        logger.info(
            f"Keygate started (session_ttl={store.default_ttl}s, tokens={len(token_table)})"
        )

        yield

        logger.info("Shutting down Keygate...")
        await reaper.stop()
        logger.info("Keygate shutdown complete")

    app = FastAPI(
        title="Keygate",
        description="Keygate - token-for-session gatekeeper",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.store = store
    app.state.session_module = session_module
    app.state.token_table = token_table
    app.state.key_files = key_files
    app.state.reaper = reaper

    # Registration order matters: the last middleware added runs first
    session_middleware = create_session_middleware(session_module, cookie_name=cookie_name)
    metrics_middleware = MetricsMiddleware()

    @app.middleware("http")
    async def enforce_session(request: Request, call_next):
        return await session_middleware(request, call_next)

    @app.middleware("http")
    async def observe_request(request: Request, call_next):
        return await metrics_middleware(request, call_next)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("cors_origins"),
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    @app.post("/token")
    async def exchange_token(request: Request):
        """
        Exchange a token (raw request body) for a session cookie.

        Returns:
            200: Session created, or the caller already holds a valid session
            400: No token sent, or token not recognized
        """
        client_host = request.client.host if request.client else None

        existing = request.cookies.get(cookie_name)
        if existing and await session_module.validate_session(existing) is not INVALID:
            logger.info(f"Already had valid sessionId ({client_host})")
            return JSONResponse(content={"message": "Session already valid"})

        token = (await request.body()).decode("utf-8", errors="replace").strip()
        if not token:
            logger.info(f"No token provided ({client_host})")
            return JSONResponse(status_code=400, content={"error": "No Token Sent"})

        permissions = token_table.resolve(token)
        if permissions is None:
            logger.warning(f"Unrecognized token {token[:8]}... from {client_host}")
            return JSONResponse(status_code=400, content={"error": "Token Not Recognized"})

        session_id = await session_module.create_session(permissions)
        response = JSONResponse(content={"message": "Session created"})
        response.set_cookie(
            cookie_name,
            session_id,
            httponly=True,
            samesite="lax",
            secure=bool(config.get("cookie_secure")),
        )
        return response

    @app.get("/")
    async def read_key_file(request: Request):
        """Serve the key file (requires READ)."""
        try:
            data = await run_in_threadpool(key_files.read)
        except FileNotFoundError:
            logger.warning(f"Key file {key_files.path} does not exist")
            return JSONResponse(status_code=404, content={"message": "Key file not found"})

        logger.info(f"File retrieved by session {request.state.session_id[:8]}...")
        return Response(content=data, media_type="application/octet-stream")

    @app.put("/")
    async def write_key_file(request: Request):
        """Replace the key file with the raw request body (requires WRITE)."""
        body = await request.body()
        logger.info(f"File updating by session {request.state.session_id[:8]}...")
        await run_in_threadpool(key_files.write, body)
        return JSONResponse(content={"message": "Key file updated"})

    @app.get("/health")
    async def health_check():
        """Liveness check with the number of held sessions."""
        return {"status": "healthy", "sessions": len(store)}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return metrics_response()

    @app.exception_handler(KeyFileError)
    async def key_file_error_handler(request: Request, exc: KeyFileError):
        """Handle key file backup/write failures."""
        logger.error(f"Key file error: {exc}")
        return JSONResponse(status_code=500, content={"message": str(exc)})

    return app


def __getattr__(name: str):
    """
    Build the module-level `app` on first access, for `uvicorn keygate.main:app`.

    Importing this module stays free of side effects; the token file is only
    read once something asks for the app.
    """
    if name == "app":
        app = create_app()
        globals()["app"] = app
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def main() -> None:
    config = get_config()
    configure_logging(config.get("log_level"))

    # Use dict config for logging, not file path
    uvicorn.run(
        create_app(config),
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        log_config=get_logging_config(config.get("log_level")),
    )


if __name__ == "__main__":
    main()
