import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wishlist.config import Settings
from wishlist.controller import WishListController
from wishlist.core.context import get_cid, set_cid
from wishlist.core.errors import ApiError
from wishlist.database import init_db, make_engine, make_session_factory
from wishlist.repository import WishRepository
from wishlist.routers.wishes import router as wishes_router
from wishlist.store import WishStore

logger = logging.getLogger("wishlist.api")


def _error_response(status: int, code: str, message: str) -> JSONResponse:
    body = {"code": code, "message": message}
    cid = get_cid()
    if cid is not None:
        body["correlation_id"] = cid
    return JSONResponse(status_code=status, content={"error": body})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        engine = make_engine(settings)
        init_db(engine)
        store = WishStore(make_session_factory(engine))
        app.state.store = store
        app.state.controller = WishListController(WishRepository(store))
        try:
            yield
        finally:
            await app.state.controller.close()
            store.close()
            engine.dispose()

    app = FastAPI(title="Wish List", version="0.1.0", lifespan=lifespan)

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        cid = get_cid()
        method = request.method
        path = request.url.path

        logger.info(
            "incoming_request",
            extra={"correlation_id": cid, "method": method, "path": path},
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_completed",
            extra={
                "correlation_id": cid,
                "method": method,
                "path": path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        return response

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        cid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_cid(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
        )
        return response

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        logger.warning(
            "api_error",
            extra={
                "correlation_id": get_cid(),
                "path": request.url.path,
                "status": exc.status,
                "code": exc.code,
            },
        )
        return _error_response(exc.status, exc.code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else "http_error"
        logger.warning(
            "http_error",
            extra={
                "correlation_id": get_cid(),
                "path": request.url.path,
                "status": exc.status_code,
            },
        )
        return _error_response(exc.status_code, "http_error", detail)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "validation_error",
            extra={
                "correlation_id": get_cid(),
                "path": request.url.path,
                "status": 422,
            },
        )
        return _error_response(422, "validation_error", "Invalid request")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_error",
            extra={
                "correlation_id": get_cid(),
                "path": request.url.path,
                "status": 500,
            },
            exc_info=True,
        )
        return _error_response(500, "internal_error", "Internal server error")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(wishes_router)
    return app


app = create_app()
