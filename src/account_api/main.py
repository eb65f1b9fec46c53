"""FastAPI application for the account API.

Provides:
- User signup and login with bcrypt-hashed passwords
- JWT bearer tokens
- A protected profile endpoint

Flow:
1. POST /auth/signup - Create account, get JWT token
2. POST /auth/login - Get JWT token
3. GET /me - Read own profile with ``Authorization: Bearer <token>``
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException

from account_api.auth.jwt import TokenIssuer
from account_api.auth.password import PasswordHasher
from account_api.auth.routes import profile_router
from account_api.auth.routes import router as auth_router
from account_api.auth.service import AccountError, AccountService
from account_api.config import Settings
from account_api.db.database import create_engine, create_session_factory, init_db
from account_api.db.store import UserStore

logger = logging.getLogger("account-api")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


# =============================================================================
# CORS
# =============================================================================


class PreflightCORSMiddleware(CORSMiddleware):
    """CORS middleware that answers preflight requests with an empty 204."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)


# =============================================================================
# Error Handlers
# =============================================================================


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    return _error(exc.status_code, exc.message)


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Unknown paths and known paths with the wrong method look the same
    if exc.status_code in (
        status.HTTP_404_NOT_FOUND,
        status.HTTP_405_METHOD_NOT_ALLOWED,
    ):
        return _error(status.HTTP_404_NOT_FOUND, "Not found")
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


# =============================================================================
# App Factory
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application and its shared, read-only components."""
    if settings is None:
        settings = Settings.from_env()

    engine = create_engine(settings.database_url)
    token_issuer = TokenIssuer.from_settings(settings)
    account_service = AccountService(
        store=UserStore(create_session_factory(engine)),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        issuer=token_issuer,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup, release connections on shutdown."""
        await init_db(engine)
        logger.info("Account API ready")
        yield
        await engine.dispose()

    app = FastAPI(
        title="Account API",
        description="User signup, login and bearer-token protected profile",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.token_issuer = token_issuer
    app.state.account_service = account_service

    app.add_middleware(
        PreflightCORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(AccountError, account_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth_router)
    app.include_router(profile_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"ok": True}

    @app.options("/{path:path}", include_in_schema=False)
    async def options_fallback(path: str):
        """Answer non-preflight OPTIONS requests like a preflight."""
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
