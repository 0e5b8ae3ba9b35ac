"""FastAPI application factory for ReplyGate."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from replygate.common.config import get_settings
from replygate.common.exceptions import UsageUnavailableError
from replygate.common.logging import setup_logging
from replygate.common.schemas import ErrorResponse, HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from replygate.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UsageUnavailableError)
    async def usage_unavailable(request: Request, exc: UsageUnavailableError):
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="usage_unavailable", message=exc.message).model_dump(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from replygate.users.router import router as users_router
    from replygate.generation.router import router as generation_router
    from replygate.usage.router import router as usage_router

    prefix = settings.api_prefix
    app.include_router(users_router, prefix=prefix, tags=["users"])
    app.include_router(generation_router, prefix=prefix, tags=["generation"])
    app.include_router(usage_router, prefix=prefix, tags=["usage"])

    return app
