import asyncio
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from libraxpert.core.config import settings
from libraxpert.core.exceptions import LibraryError
from libraxpert.core.logging import setup_logging, get_logger, log_extra, request_id_ctx
from libraxpert.db.session import AsyncSessionLocal, init_models
from libraxpert.db.models import User, UserRole
from libraxpert.core.security import hash_password
from libraxpert.services.maintenance import maintenance_loop

logger = get_logger("libraxpert.main")

# Background task reference
_maintenance_task: asyncio.Task | None = None


async def seed_admin() -> None:
    """Create the built-in admin account if it doesn't exist."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
        admin = result.scalar_one_or_none()
        if not admin:
            admin = User(
                email=settings.ADMIN_EMAIL,
                hashed_password=hash_password(settings.ADMIN_PASSWORD),
                full_name="System Administrator",
                role=UserRole.ADMIN,
                is_built_in=True,
            )
            db.add(admin)
            await db.commit()
            logger.info(f"Built-in admin created: {settings.ADMIN_EMAIL}")
        else:
            logger.info(f"Built-in admin already exists: {settings.ADMIN_EMAIL}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    global _maintenance_task

    # Startup
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_models()
    await seed_admin()

    _maintenance_task = asyncio.create_task(maintenance_loop())
    logger.info("Background maintenance loop started")

    yield

    # Shutdown
    if _maintenance_task:
        _maintenance_task.cancel()
        try:
            await _maintenance_task
        except asyncio.CancelledError:
            pass
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "## LibraXpert API\n\n"
        "Backend for a university library:\n\n"
        "- **Authentication** – Register, login (JWT Bearer) by email or enrollment number, logout\n"
        "- **Users** – Admin CRUD for user accounts\n"
        "- **Books** – Catalog management with search & filtering\n"
        "- **Borrow Requests** – Request a book, staff approve or decline\n"
        "- **Loans** – Active loans, derived overdue status, renewal requests and decisions\n"
        "- **Reservations** – Waitlist for books with no copies available\n"
        "- **Notifications** – Per-user inbox fed by the workflows above\n"
        "- **Feedback** – Public feedback form with admin review and statistics\n\n"
        "### Authentication\n"
        "Most endpoints require a **Bearer JWT token**. "
        "Obtain one via `POST /api/v1/auth/login` (OAuth2 password flow) "
        "or `POST /api/v1/auth/register`.\n\n"
        "### Roles\n"
        "| Role | Description |\n"
        "|------|-------------|\n"
        "| `student` | Borrower identified by a 12-digit enrollment number |\n"
        "| `external` | Borrower without an enrollment number |\n"
        "| `librarian` | Manages books, processes requests, renewals and the waitlist |\n"
        "| `admin` | Everything a librarian can do, plus users and feedback |\n"
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Application health checks"},
        {"name": "Authentication", "description": "Register, login (JWT), logout and profile"},
        {"name": "Users", "description": "User management (Admin only)"},
        {"name": "Books", "description": "Book catalog management with search and filtering"},
        {"name": "Borrow Requests", "description": "Borrow request submission and processing"},
        {"name": "Loans", "description": "Loan listing and the renewal workflow"},
        {"name": "Reservations", "description": "Waitlist for unavailable books"},
        {"name": "Notifications", "description": "Per-user notification inbox"},
        {"name": "Feedback", "description": "Visitor feedback and admin review"},
    ],
    contact={
        "name": "LibraXpert Support",
        "email": "support@libraxpert.com",
    },
    license_info={
        "name": "MIT",
    },
    servers=[
        {"url": "http://localhost:8000", "description": "Local development"},
    ],
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID and timing middleware
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    req_id = str(uuid.uuid4())[:8]
    request_id_ctx.set(req_id)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({duration:.3f}s)"
    )

    response.headers["X-Request-ID"] = req_id
    return response


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    logger.warning(
        f"{request.method} {request.url.path} rejected: {exc.message}",
        **log_extra(error=type(exc).__name__, status_code=exc.status_code),
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Health check
@app.get("/health", tags=["Health"], summary="Health check", description="Returns the current health status and API version.")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Include routers
from libraxpert.api.v1.endpoints.auth import router as auth_router
from libraxpert.api.v1.endpoints.users import router as users_router
from libraxpert.api.v1.endpoints.books import router as books_router
from libraxpert.api.v1.endpoints.borrow_requests import router as borrow_requests_router
from libraxpert.api.v1.endpoints.loans import router as loans_router
from libraxpert.api.v1.endpoints.reservations import router as reservations_router
from libraxpert.api.v1.endpoints.notifications import router as notifications_router
from libraxpert.api.v1.endpoints.feedback import router as feedback_router

app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(books_router, prefix="/api/v1")
app.include_router(borrow_requests_router, prefix="/api/v1")
app.include_router(loans_router, prefix="/api/v1")
app.include_router(reservations_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(feedback_router, prefix="/api/v1")
