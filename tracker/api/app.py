import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tracker.api.routes import limiter, router
from tracker.core.engine import RefreshEngine, build_engine
from tracker.core.errors import TrackerError
from tracker.utils.logger import get_logger

log = get_logger(__name__)


def create_app(engine: Optional[RefreshEngine] = None, *, start_scheduler: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.engine is None:
            app.state.engine = build_engine()
        if start_scheduler:
            await app.state.engine.scheduler.start()
            log.info("Refresh scheduler started")
        try:
            yield
        finally:
            await app.state.engine.close()
            log.info("Refresh engine stopped")

    app = FastAPI(
        title="Listing Tracker API",
        description="Background price and availability refresh for tracked marketplace listings",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError):
        log.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"success": False, **exc.as_dict()})

    origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, tags=["Refresh"])

    @app.get("/health")
    def health():
        return {"status": "ok", "env": os.getenv("ENV", "dev")}

    return app


__all__ = ["create_app"]
