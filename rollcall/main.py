# /rollcall/main.py

import logging

# --- Core FastAPI Imports ---
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager

# --- Application-specific Imports ---
from .core.config import get_settings
from .core.exceptions import AuthError, RollcallError, StorageError
from .db.database import init_db
from .routers import auth_router, classes_router, dashboard_router, data_router

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --- Application Lifecycle Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Runs once at startup.
    init_db()
    yield


# --- FastAPI Application Instance Creation ---
app = FastAPI(
    title="Rollcall API",
    description="Class rosters, per-session attendance and derived attendance statistics.",
    version="1.0.0",
    lifespan=lifespan
)

# --- Middleware Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error Handlers ---
# Every error body is {"message": ...}.

@app.exception_handler(RollcallError)
async def rollcall_error_handler(request: Request, exc: RollcallError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) and exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    # Reads run outside `transaction()`, so their database errors arrive here unmapped.
    logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"message": StorageError().message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "invalid"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "; ".join(problems) or "Invalid request."},
    )


# --- API Router Inclusion ---
app.include_router(auth_router.router, prefix="/api", tags=["Auth"])
app.include_router(data_router.router, prefix="/api", tags=["Snapshot"])
app.include_router(classes_router.router, prefix="/api/classes", tags=["Classes"])
app.include_router(dashboard_router.router, prefix="/api/dashboard", tags=["Dashboard"])


# --- Root / Health Check Endpoint ---
@app.get("/", tags=["Health Check"])
async def read_root():
    """A simple health check endpoint to confirm the API is online."""
    return {"status": "Rollcall API is running!", "version": app.version}
