import logging
from contextlib import asynccontextmanager
import traceback
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from algomakers.core.config import settings
from algomakers.db.session import create_db_and_tables
from algomakers.core.startup import ensure_admin_exists

from algomakers.routers.auth_router import router as auth_router
from algomakers.routers.pair_router import router as pair_router
from algomakers.routers.payment_router import router as payment_router
from algomakers.routers.billing_router import router as billing_router
from algomakers.routers.subscription_router import router as subscription_router
from algomakers.routers.notification_router import router as notification_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        logger.info("Creating database and tables...")
        create_db_and_tables()

        logger.info("Checking for admin user...")
        ensure_admin_exists()
        logger.info("Admin user check completed")
    except Exception as e:
        logger.error(f"Error during application startup: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise

    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Subscriptions and crypto payments for AlgoMakers.Ai trading signals",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.NEXTAUTH_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: {str(exc)}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"}
    )

@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()[0].get("msg", "Validation Error")}
    )

@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "errors": exc.errors(include_url=False, include_context=False)
        }
    )

app.include_router(auth_router)
app.include_router(pair_router)
app.include_router(payment_router)
app.include_router(billing_router)
app.include_router(subscription_router)
app.include_router(notification_router)

@app.get("/", include_in_schema=False)
@app.head("/", include_in_schema=False)
def root():
    return {"message": "Service is up"}
