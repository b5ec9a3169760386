import asyncio
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import settings
from .db import Base, engine, ensure_sqlite_directory
from .errors import register_exception_handlers, error_response
from .logging import setup_logging, RequestIdMiddleware
from .routes.auth import router as auth_router
from .routes.equipment import router as equipment_router
from .routes.projects import router as projects_router
from .routes.quotes import router as quotes_router
from .routes.invoices import router as invoices_router
from .routes.delivery import router as delivery_router
from .routes.customers import router as customers_router
from .routes.users import router as users_router


log = structlog.get_logger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_sqlite_directory(settings.database_url)
    if settings.auto_create_db:
        Base.metadata.create_all(bind=engine)
        log.info("database_tables_verified", tables=len(Base.metadata.tables))
    yield


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(equipment_router, prefix=API_PREFIX)
    app.include_router(projects_router, prefix=API_PREFIX)
    app.include_router(quotes_router, prefix=API_PREFIX)
    app.include_router(invoices_router, prefix=API_PREFIX)
    app.include_router(delivery_router, prefix=API_PREFIX)
    app.include_router(customers_router, prefix=API_PREFIX)
    app.include_router(users_router, prefix=API_PREFIX)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.middleware("http")
    async def request_deadline(request, call_next):
        timeout = settings.request_timeout_seconds
        # Checked by the request session before it commits
        request.state.deadline = time.monotonic() + timeout
        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("request_timed_out", timeout=timeout)
            return error_response(504, "Request timed out")

    @app.get(f"{API_PREFIX}/health")
    def health():
        return {"success": True, "status": "ok"}

    return app


app = create_app()
