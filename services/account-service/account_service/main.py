"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import install_error_handlers, router as api_router
from .config import get_settings
from .domain.delivery import DeliveryAddressService
from .domain.service import AccountService
from .repository import AccountRepository
from .security.passwords import BcryptPasswordHasher
from .security.tokens import JwtTokenIssuer

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    repository = AccountRepository(pool)
    token_issuer = JwtTokenIssuer.from_settings(settings)
    account_service = AccountService(
        repository,
        BcryptPasswordHasher(rounds=settings.bcrypt_rounds),
        token_issuer,
    )
    app.state.pool = pool
    app.state.token_issuer = token_issuer
    app.state.account_service = account_service
    app.state.delivery_address_service = DeliveryAddressService(repository)

    if settings.super_admin_password:
        account_service.ensure_super_admin(
            settings.super_admin_identification, settings.super_admin_password
        )
    else:
        logger.warning("SUPER_ADMIN_PASSWORD not set; skipping super admin bootstrap")

    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


install_error_handlers(app)
app.include_router(api_router)
