from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logging import LoggingMiddleware, SERVICE_VERSION, get_logger, setup_logging
from app.db import database
from app.middleware.idempotency import IdempotencyMiddleware
from app.routers import auth, cart, orders, products, stores, users
from app.utils.exceptions import APIException, InternalError

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting MarketHub API", environment=settings.ENVIRONMENT)
    if settings.AUTO_CREATE_TABLES:
        await database.create_tables()
    yield
    await database.engine.dispose()
    logger.info("MarketHub API stopped")


# Create app
app = FastAPI(title="MarketHub API", version=SERVICE_VERSION, lifespan=lifespan)

app.add_middleware(IdempotencyMiddleware)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Unhandled database error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {"status": "healthy", "message": "MarketHub API is running"}


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Welcome to MarketHub API",
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health"
    }

# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(stores.router)
app.include_router(products.router)
app.include_router(cart.router)
app.include_router(orders.router)
