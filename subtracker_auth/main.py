"""FastAPI application wiring for the subscription-tracker auth service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.handlers import install_exception_handlers
from .api.routes import router as auth_router
from .config import Settings, get_settings
from .domain.contracts import AccountStore
from .domain.errors import SigningKeyMissing
from .domain.service import AccountService
from .memory_repository import InMemoryAccountRepository
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.tokens import TokenIssuer

logger = logging.getLogger(__name__)

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _build_account_store(config: Settings) -> tuple[AccountStore, ConnectionPool | None]:
    """Instantiate the configured account store backend."""
    if config.account_store_backend == "memory":
        logger.warning("account store using in-memory backend; data is not persisted")
        return InMemoryAccountRepository(), None
    if config.account_store_backend != "postgres":
        raise ValueError(f"unknown account store backend: {config.account_store_backend}")

    pool = ConnectionPool(config.database_url, max_size=config.database_pool_max_size, open=False)
    pool.open()
    repository = AccountRepository(pool, acquire_timeout=config.transaction_timeout_seconds)
    repository.ensure_schema()
    logger.info("account store configured for postgres backend")
    return repository, pool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (store, hasher, token issuer) for the app lifecycle."""
    config = get_settings()
    if not config.jwt_secret:
        logger.critical("JWT_SECRET is not set; refusing to start")
        raise SigningKeyMissing()

    store, pool = _build_account_store(config)
    tokens = TokenIssuer(
        secret=config.jwt_secret,
        issuer=config.jwt_issuer,
        ttl_seconds=config.jwt_ttl_seconds,
    )
    app.state.account_service = AccountService(
        store,
        PasswordHasher(rounds=config.bcrypt_rounds),
        tokens,
        transaction_timeout=config.transaction_timeout_seconds,
    )
    try:
        yield
    finally:
        if pool is not None:
            pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

install_exception_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    """Expose Prometheus metrics for scrapes."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth_router)
