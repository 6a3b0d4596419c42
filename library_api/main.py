from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse, Response
from fastapi.openapi.utils import get_openapi
import time
import uuid
import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.endpoints import auth, authors, books, loans, stats, users
from library_api.core.config import settings
from library_api.core.errors import LibraryError
from library_api.core.logging import configure_logging, get_logger, request_id_ctx
from library_api.db.session import Base, SessionLocal, engine
from library_api.services.init_admin import ensure_builtin_admin


configure_logging()
request_logger = get_logger("api.request")
error_logger = get_logger("api.errors")

app = FastAPI(
    title="Library Management API",
    version="1.0.0",
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(authors.router)
app.include_router(books.router)
app.include_router(loans.router)
app.include_router(stats.router)


@app.on_event("startup")
def startup_event():
    configure_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_builtin_admin(db)
    finally:
        db.close()


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    error_logger.warning(
        "request_rejected",
        extra={
            "error": type(exc).__name__,
            "detail": exc.detail,
            "method": request.method,
            "path": request.url.path,
            "status_code": exc.status_code,
        },
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.middleware("http")
async def add_request_id_and_log(request: Request, call_next):
    """
    - Assigns a request id (reusing X-Request-ID when the client sends one).
    - Times the request.
    - Logs completion, at WARNING level when slower than the threshold.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start = time.perf_counter()

    request.state.request_id = request_id
    request_id_ctx.set(request_id)

    try:
        response: Response = await call_next(request)
    except Exception:
        process_time_ms = (time.perf_counter() - start) * 1000
        request_logger.error(
            "unhandled_exception",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": 500,
                "duration_ms": round(process_time_ms, 2),
                "client_host": request.client.host if request.client else None,
            },
            exc_info=True,
        )
        raise

    process_time_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request_id

    level = logging.INFO
    if process_time_ms > settings.SLOW_REQUEST_THRESHOLD_MS:
        level = logging.WARNING

    request_logger.log(
        level,
        "request_completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(process_time_ms, 2),
            "client_host": request.client.host if request.client else None,
        },
    )

    return response


@app.get("/")
def root():
    return {"message": "Library API running"}


@app.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}


def custom_openapi():
    """
    Declare the OAuth2 password scheme so Swagger shows the Authorize dialog.

    No global security requirement is set: only endpoints depending on
    get_current_user are marked as protected.
    """
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title="Library Management API",
        version="1.0.0",
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})

    # Same name as the OAuth2PasswordBearer scheme
    security_schemes["OAuth2PasswordBearer"] = {
        "type": "oauth2",
        "flows": {
            "password": {
                "tokenUrl": "/api/v1/auth/login",
                "scopes": {},
            }
        },
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi
