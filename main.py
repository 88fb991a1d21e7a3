import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

import activity_routes
import auth_routes
import workspace_routes
from config import Settings, settings as default_settings
from database import Database
from mailer import Mailer

logging.basicConfig(level=default_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _validation_message(errors) -> str:
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        parts.append(f"{'.'.join(loc)}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API. A database passed in is used as-is and left open on shutdown."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        db = database
        if db is None:
            db = Database(settings.DATABASE_URL, settings.DATABASE_NAME).connect()
        db.ensure_indexes()
        app.state.db = db

        yield

        logger.info("Shutting down application")
        if database is None:
            db.close()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.mailer = Mailer(settings)

    app.add_middleware(
        CORSMiddleware,
        # credentials rule out a literal "*", so any origin is echoed back instead
        allow_origins=[] if settings.allow_any_origin else settings.allowed_origins,
        allow_origin_regex=".*" if settings.allow_any_origin else None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path} - Origin: {request.headers.get('origin')}")
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc.errors()))

    @app.exception_handler(ValidationError)
    async def model_validation_error(request: Request, exc: ValidationError):
        return _error(400, _validation_message(exc.errors()))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error(500, str(exc))

    app.include_router(auth_routes.router, prefix="/api/auth", tags=["auth"])
    app.include_router(workspace_routes.router, prefix="/api/workspaces", tags=["workspaces"])
    app.include_router(activity_routes.router, prefix="/api/activity", tags=["activity"])

    @app.get("/")
    def read_root():
        return {"message": "Welcome to Finaxial API"}

    @app.get("/test")
    def test_database(request: Request):
        response = {
            "backend": "Running",
            "database": "Not Available",
            "database_name": settings.DATABASE_NAME,
            "connection_status": "Not Connected",
            "collections": [],
        }
        db = getattr(request.app.state, "db", None)
        if db is None:
            return response
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "Connected & Working"
            response["connection_status"] = "Connected"
        except Exception as e:
            response["database"] = f"Connected but Error: {str(e)[:80]}"
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
