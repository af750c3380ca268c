import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS
from .database import Base, SessionLocal, engine
from .domain.bookings.router import router as bookings_router
from .domain.columns.router import router as columns_router
from .domain.columns.service import ColumnService
from .domain.discounts.router import router as discounts_router
from .domain.email_templates.router import router as email_templates_router
from .domain.gmail.router import router as gmail_router
from .domain.payment_reminders.router import router as payment_reminders_router
from .domain.payment_terms.router import router as payment_terms_router
from .domain.payments.router import router as payments_router
from .domain.scheduled_emails.router import router as scheduled_emails_router
from .domain.sheets.router import router as sheets_router
from .domain.tours.router import router as tours_router
from .domain.versions.router import router as versions_router
from .jobs import router as jobs_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    db = SessionLocal()
    try:
        ColumnService(db).seed_columns()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to seed booking sheet columns: {e}")
    finally:
        db.close()

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Tour Back Office API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: Missing or invalid Authorization header")
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
origins = [origin.strip() for origin in ALLOWED_ORIGINS.split(",") if origin.strip()]
logger.info(f"CORS allowed origins: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(columns_router)
app.include_router(tours_router)
app.include_router(payment_terms_router)
app.include_router(bookings_router)
app.include_router(payment_reminders_router)
app.include_router(versions_router)
app.include_router(email_templates_router)
app.include_router(scheduled_emails_router)
app.include_router(gmail_router)
app.include_router(payments_router)
app.include_router(sheets_router)
app.include_router(discounts_router)
app.include_router(jobs_router)


@app.get("/")
def root():
    return {"message": "Tour Back Office API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
