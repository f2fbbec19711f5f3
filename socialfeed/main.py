from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from socialfeed.core.settings import S
from socialfeed.metrics import metrics_endpoint, metrics_middleware, set_app_info
from socialfeed.routers.auth import router as auth_router
from socialfeed.routers.comments import router as comments_router
from socialfeed.routers.likes import router as likes_router
from socialfeed.routers.misc import router as misc_router
from socialfeed.routers.posts import router as posts_router
from socialfeed.routers.search import router as search_router
from socialfeed.routers.storage import router as storage_router
from socialfeed.routers.users import router as users_router
from socialfeed.services.providers import shutdown_notifications

logger = logging.getLogger(__name__)


async def http_exception_handler(_: Request, exc: StarletteHTTPException):
    content = {"success": False, "message": exc.detail}
    error = getattr(exc, "error", None)
    if error:
        content["error"] = error
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(_: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request", "error": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    shutdown_notifications()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, S.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=S.app_name, version=S.app_version, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(S.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if S.metrics_enabled:
        app.middleware("http")(metrics_middleware)
        set_app_info(app.title, app.version)
        app.get("/metrics")(metrics_endpoint)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(misc_router)
    app.include_router(auth_router, prefix=S.api_prefix)
    app.include_router(posts_router, prefix=S.api_prefix)
    app.include_router(likes_router, prefix=S.api_prefix)
    app.include_router(comments_router, prefix=S.api_prefix)
    app.include_router(search_router, prefix=S.api_prefix)
    app.include_router(users_router, prefix=S.api_prefix)
    app.include_router(storage_router, prefix=S.api_prefix)

    return app

app = create_app()
