"""Rollcall - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ServerSelectionTimeoutError

from app.config import settings
from app.db import db_shutdown, db_startup
from app.errors import DomainError
from app.logger import configure_logging
from app.api import attendance, auth, groups, realtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    try:
        await db_startup()
    except ServerSelectionTimeoutError as e:
        logger.error("MongoDB is not reachable at %s", settings.mongodb_url)
        raise RuntimeError("MongoDB connection failed. Check MONGODB_URL.") from e
    yield
    await db_shutdown()


async def domain_exception_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app(lifespan=lifespan) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Classroom attendance: groups, daily sheets, live dashboard updates",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(groups.router, prefix="/api/groups", tags=["Groups"])
    app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
    app.include_router(realtime.router, prefix="/ws", tags=["Realtime"])

    @app.get("/health")
    def health():
        return {"status": "ok", "app": settings.app_name}

    return app


app = create_app()
