import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from telehealth.config import Settings, get_settings
from telehealth.database import engine, Base
from telehealth.routers import auth as auth_router
from telehealth.routers import telehealth as telehealth_router
from telehealth.services.time_window import utc_now
from telehealth import models  # noqa: F401  registers tables on Base.metadata

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if not app.state.settings.is_telehealth_configured():
        logger.warning("Telehealth is not configured; telehealth endpoints will answer 503")
    yield
    # Shutdown
    await engine.dispose()


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Middleware to add no-cache headers so room credentials are never cached."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"
        response.headers["Expires"] = "0"
        response.headers["Pragma"] = "no-cache"
        return response


def create_app(settings: Optional[Settings] = None, clock: Callable = utc_now) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Telehealth Session Service",
        description="Access control and presence tracking for appointment video rooms",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clock = clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(NoCacheMiddleware)

    app.include_router(auth_router.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(telehealth_router.router, prefix="/api", tags=["Telehealth"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": "telehealth-session-service"}

    return app


app = create_app()
