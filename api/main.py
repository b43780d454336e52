"""
api/main.py — FastAPI entry point.

Lifespan:
  - Builds the catalog/provider adapters: JSON seed when settings.seed_path
    is set, otherwise asyncpg pools on settings.db_url
  - Creates the entity dictionary cache, autolinker and affiliate router
  - Closes the database pools on shutdown

DSN: config.db_url may carry the SQLAlchemy-style 'postgresql+asyncpg://'
prefix; asyncpg expects 'postgresql://'. The prefix is converted here.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from adapters.affiliate_router import ScoringAffiliateRouter
from adapters.affiliate_store.postgres_affiliate_store import PostgresAffiliateStore
from adapters.autolinker import MarkdownAutolinker
from adapters.entity_catalog.postgres_entity_catalog import PostgresEntityCatalog
from adapters.entity_dictionary import EntityDictionaryCache
from adapters.json_seed import JsonSeedAffiliateStore, JsonSeedEntityCatalog
from api.routers import affiliate, autolink, dictionary
from api.schemas import HealthResponse
from config import Settings
from contracts import CatalogLoadError

logger = logging.getLogger("synapedia")


def _asyncpg_dsn(url: str) -> str:
    """Converts 'postgresql+asyncpg://...' → 'postgresql://...'."""
    return url.replace("postgresql+asyncpg://", "postgresql://", 1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    if settings.seed_path:
        logger.info("Using JSON seed catalog %s", settings.seed_path)
        app.state.backend = "seed"
        app.state.entity_catalog = JsonSeedEntityCatalog(seed_path=Path(settings.seed_path))
        app.state.affiliate_store = JsonSeedAffiliateStore(seed_path=Path(settings.seed_path))
    else:
        logger.info("Connecting to PostgreSQL...")
        dsn = _asyncpg_dsn(settings.db_url)
        app.state.backend = "postgres"
        app.state.entity_catalog = await PostgresEntityCatalog.create(dsn)
        app.state.affiliate_store = await PostgresAffiliateStore.create(dsn)

    # Stateless adapters, created once
    app.state.dictionary_cache = EntityDictionaryCache(ttl_s=settings.dictionary_cache_ttl_s)
    app.state.autolinker = MarkdownAutolinker(settings.autolink_config())
    app.state.affiliate_router = ScoringAffiliateRouter()

    logger.info(
        "Synapedia linking API ready (monetization=%s, autolink=%s).",
        settings.monetization_enabled, settings.autolink_active,
    )
    yield

    if app.state.backend == "postgres":
        logger.info("Shutting down, closing DB pools.")
        await app.state.entity_catalog.close()
        await app.state.affiliate_store.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Routers
    app.include_router(autolink.router)
    app.include_router(affiliate.router)
    app.include_router(dictionary.router)

    # Health
    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health(request: Request):
        catalog = request.app.state.entity_catalog
        catalog_status = "ok"
        try:
            if isinstance(catalog, PostgresEntityCatalog):
                await catalog.ping()
            else:
                await catalog.load_entities()
        except Exception as e:
            catalog_status = f"error: {e}"

        return HealthResponse(
            status="ok" if catalog_status == "ok" else "degraded",
            catalog=catalog_status,
            backend=request.app.state.backend,
            version=settings.app_version,
        )

    # Global error handlers
    @app.exception_handler(KeyError)
    async def key_error_handler(request: Request, exc: KeyError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(CatalogLoadError)
    async def catalog_error_handler(request: Request, exc: CatalogLoadError):
        logger.warning("Catalog unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": f"Catalog unavailable: {exc}"})

    return app


app = create_app()
