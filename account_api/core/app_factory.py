from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..application.services.account_service import AccountService
from ..application.services.token_service import AccessTokenService
from ..domain.errors import AccountError
from ..domain.ports.notifications import VerificationNotifier
from ..infrastructure.persistence.sqlite import SQLiteAccountStore
from ..presentation.api.routers import accounts as accounts_router
from ..presentation.api.routers import oauth as oauth_router
from ..services.email_service import EmailService
from ..services.password_hasher import BcryptPasswordHasher
from ..services.retry import RetryPolicy, Sleeper
from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "We are facing an unexpected problem. Please try again later"


def create_application(
    settings: Optional[Settings] = None,
    *,
    notifier: Optional[VerificationNotifier] = None,
    sleep: Sleeper = time.sleep,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(title="Accounts API", lifespan=_create_lifespan(settings, notifier, sleep))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(oauth_router.router)
    app.include_router(accounts_router.router)
    _register_exception_handlers(app)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    return app


def _create_lifespan(
    settings: Settings,
    notifier: Optional[VerificationNotifier],
    sleep: Sleeper,
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        accounts = SQLiteAccountStore(settings.database_path)
        hasher = BcryptPasswordHasher(rounds=settings.password_hash_rounds)
        if notifier is None:
            verification_notifier: VerificationNotifier = EmailService(
                base_url=settings.public_base_url,
                smtp_host=settings.smtp_host,
                smtp_port=settings.smtp_port,
                smtp_username=settings.smtp_username,
                smtp_password=settings.smtp_password,
                from_email=settings.smtp_from_email,
            )
        else:
            verification_notifier = notifier
        retry_policy = RetryPolicy(
            max_attempts=settings.notify_max_attempts,
            delay_ms=settings.notify_retry_delay_ms,
            sleep=sleep,
        )
        account_service = AccountService(
            accounts,
            hasher,
            verification_notifier,
            retry_policy,
            verification_ttl_hours=settings.verification_ttl_hours,
        )
        token_service = AccessTokenService(
            accounts=accounts,
            hasher=hasher,
            clients=settings.oauth_clients,
            secret_key=settings.access_token_secret,
            token_exp_minutes=settings.access_token_exp_minutes,
        )
        if not settings.oauth_clients:
            logger.warning("OAUTH_CLIENTS is empty; no client will be able to obtain tokens.")
        account_service.ensure_administrator(
            settings.admin_default_name,
            settings.admin_default_email,
            settings.admin_default_password,
        )

        app.state.container = ApplicationContainer(  # type: ignore[attr-defined]
            settings=settings,
            accounts=accounts,
            notifier=verification_notifier,
            retry_policy=retry_policy,
            account_service=account_service,
            token_service=token_service,
        )

        try:
            yield
        finally:
            accounts.close()

    return lifespan


def _error_response(detail: Any, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"error": detail, "code": status_code}),
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccountError)
    async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.detail, exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.detail, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors: Dict[str, list] = {}
        for error in exc.errors():
            location = error.get("loc", ())
            field = str(location[-1]) if location else "request"
            errors.setdefault(field, []).append(error.get("msg", "Invalid value."))
        return _error_response(errors, status.HTTP_422_UNPROCESSABLE_ENTITY)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(INTERNAL_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)
