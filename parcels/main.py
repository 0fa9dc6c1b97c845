import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import ALLOWED_ORIGINS, REDIS_URL
from .database import Database, get_db
from .domain.accounts.router import router as accounts_router
from .domain.billing.dodo_service import DodoPaymentsService
from .domain.billing.webhooks import router as webhooks_router
from .domain.certificates.router import router as certificates_router
from .domain.claims.router import router as claims_router
from .domain.marketplace.router import router as marketplace_router
from .domain.registry.router import router as registry_router
from .domain.transfers.router import router as transfers_router
from .errors import DomainError
from .rate_limiter import RateLimiter, build_rate_limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    database: Optional[Database] = None,
    payments=None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the API. Resources not passed in are created at start-up from the
    environment; the database is disposed at shutdown either way.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        app.state.database = database or Database()
        app.state.database.create_all()
        logger.info("Database tables created successfully")

        app.state.payments = payments or DodoPaymentsService()
        app.state.rate_limiter = rate_limiter or build_rate_limiter(REDIS_URL)

        yield

        logger.info("Application shutting down...")
        app.state.database.dispose()

    app = FastAPI(title="Parcels of Time API", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} - {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={
                "ok": False,
                "error": "validation",
                "message": "Invalid request",
                "detail": jsonable_errors(exc),
            },
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
            raise

    logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,  # session cookie
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(accounts_router)
    app.include_router(claims_router)
    app.include_router(transfers_router)
    app.include_router(marketplace_router)
    app.include_router(registry_router)
    app.include_router(certificates_router)
    app.include_router(webhooks_router)

    @app.get("/")
    def root():
        return {"message": "Parcels of Time API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    @app.get("/health/db")
    def database_health_check(db: Session = Depends(get_db)):
        """Check database connectivity for monitoring"""
        start_time = time.time()
        try:
            db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"❌ Database health check failed: {e}")
            return JSONResponse(
                status_code=503, content={"status": "unhealthy", "database": {"connected": False}}
            )
        response_time = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "database": {"connected": True, "response_time_ms": round(response_time, 2)},
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """pydantic error entries without the non-serializable ``ctx``/``input`` values"""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


app = create_app()
