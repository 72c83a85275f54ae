"""
PrintFlow — Settlement Engine API
Mounts the routers, maps settlement errors to HTTP responses, and wires
logging and shared clients into the app lifecycle.
"""
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from .config import settings
from .exceptions import SettlementError
from .http_client import close_clients
from .logging_config import request_context, setup_logging
from .rate_limit import limiter
from .routers import companies, invoices, jobs, notifications, pricing, proofs, purchase_orders
from .schemas.errors import ErrorResponse

VERSION = "1.0.0"


# --- App Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("PrintFlow {} starting (db={})", VERSION, "sqlite" if settings.is_sqlite else "postgresql")
    yield
    close_clients()


# --- FastAPI App ---
app = FastAPI(title="PrintFlow", version=VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

for module in (jobs, proofs, purchase_orders, invoices, pricing, companies, notifications):
    app.include_router(module.router)


# --- Request Context ---
def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return rid or request.headers.get("x-request-id") or uuid.uuid4().hex[:12]


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request.state.request_id = _request_id(request)
    with request_context(request.state.request_id):
        response = await call_next(request)
    response.headers["x-request-id"] = request.state.request_id
    return response


# --- Error Handlers ---


def _error(status_code: int, message: str, request: Request, detail: list | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, status_code=status_code, request_id=_request_id(request), detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    if exc.status_code >= 500:
        logger.error("{} on {} {}: {}", type(exc).__name__, request.method, request.url.path, exc.message)
    else:
        logger.info("{} on {} {}: {}", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message or type(exc).__name__, request)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return _error(exc.status_code, str(exc.detail), request)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    detail = [{"loc": list(e.get("loc", [])), "msg": e.get("msg", "")} for e in exc.errors()]
    return _error(422, "Validation failed", request, detail=detail)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}
