"""
App factory and ASGI entrypoint for the AI DOM Tutor backend.

- Builds process-scoped handles (database engine, token verifier, credential
  cipher, outbound HTTP client) once and stores them on app.state
- Renders every error as {"error": message}
- Registers config, instruction and catalog routers
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException

from auth.supabase_client import TokenVerifier, build_token_verifier
from config import AppConfig, get_config
from config_service import ServiceError
from crypto import CredentialCipher
from database import build_engine, create_db_and_tables
from instruction_service import InstructionService
from routes import config_router, instructions_router, languages_router, providers_router, settings_router

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {location + ': ' if location else ''}{first.get('msg', 'invalid value')}"
        else:
            message = "Invalid request"
        return _error(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, str(exc) or type(exc).__name__)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    engine: Optional[Engine] = None,
    token_verifier: Optional[TokenVerifier] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    cipher: Optional[CredentialCipher] = None,
) -> FastAPI:
    """
    Build the application.

    Any handle not passed in is constructed from config; handles passed in
    are owned by the caller and are not closed on shutdown.
    """
    config = config or get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    owns_http_client = http_client is None
    engine = engine or build_engine(config.database)
    token_verifier = token_verifier or build_token_verifier(config.supabase)
    http_client = http_client or httpx.AsyncClient(timeout=config.providers.timeout_seconds)
    cipher = cipher or CredentialCipher(config.credential_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_db_and_tables(app.state.engine)
        yield
        if owns_http_client:
            await app.state.http_client.aclose()

    app = FastAPI(
        title="AI DOM Tutor API",
        version="1.0.0",
        description="Language/provider configuration and AI instruction generation",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.engine = engine
    app.state.token_verifier = token_verifier
    app.state.http_client = http_client
    app.state.cipher = cipher
    app.state.instruction_service = InstructionService(
        http_client,
        cipher,
        timeout=config.providers.timeout_seconds,
    )

    # Bearer tokens, not cookies: wildcard origin without credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    register_exception_handlers(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(config_router)
    app.include_router(instructions_router)
    app.include_router(languages_router)
    app.include_router(providers_router)
    app.include_router(settings_router)

    return app


if __name__ == "__main__":
    # Run from the backend directory: python main.py
    uvicorn.run("main:create_app", factory=True, host="127.0.0.1", port=8000, reload=True)
