import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from storefront.api import auth, cart, categories, orders, products, users
from storefront.api.error_handlers import register_error_handlers
from storefront.core.config import Settings, settings as default_settings
from storefront.core.logger import configure_logging
from storefront.core.security import configure_hashing
from storefront.db.session import Base, build_engine, build_session_factory
from storefront.tasks import start_token_cleanup

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    configure_hashing(settings.BCRYPT_ROUNDS)

    owns_engine = engine is None
    engine = engine or build_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=engine)
        cleanup = start_token_cleanup(app.state.session_factory, settings.TOKEN_CLEANUP_INTERVAL_SECONDS)
        logger.info("%s started (%s)", settings.APP_NAME, settings.ENVIRONMENT)
        yield
        if cleanup is not None:
            cleanup.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup
        if owns_engine:
            engine.dispose()
        logger.info("%s stopped", settings.APP_NAME)

    app = FastAPI(title=settings.APP_NAME, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    register_error_handlers(app, settings)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(categories.router, prefix="/api/categories", tags=["categories"])
    app.include_router(products.router, prefix="/api/products", tags=["products"])
    app.include_router(cart.router, prefix="/api/cart", tags=["cart"])
    app.include_router(orders.router, prefix="/api/orders", tags=["orders"])

    @app.get("/health")
    def health():
        return {"status": "ok", "app": settings.APP_NAME, "environment": settings.ENVIRONMENT}

    return app


app = create_app()
