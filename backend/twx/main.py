"""FastAPI application."""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .logging_config import configure_logging, log_unhandled_rejection
from .problem_details import register_problem_handlers
from .routers import auth, elements, inspections, projects, system, users, viewer

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log unhandled task errors from the event loop and keep serving."""
    asyncio.get_running_loop().set_exception_handler(log_unhandled_rejection)
    yield


# Create app
app = FastAPI(
    title="TWX Asset Tracking API",
    version=settings.APP_VERSION,
    description="Temporary-works asset registry, BIM linking, inspections and project transfers",
    lifespan=lifespan,
)

# Production safety checks (fail closed on insecure cookie config).
if settings.ENV.lower() == "production" and not settings.SESSION_COOKIE_SECURE:
    raise RuntimeError("SESSION_COOKIE_SECURE must be true in production (requires HTTPS).")
if settings.ENV.lower() == "production" and settings.SESSION_SECRET == "change-me":
    raise RuntimeError("SESSION_SECRET must be set in production.")
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
if settings.ENV.lower() == "production" and any(
    origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1") for origin in settings.cors_origins
):
    raise RuntimeError("ALLOWED_ORIGINS contains localhost in production; set it to your real frontend origin.")

# CORS
cors_methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
cors_headers = ["Content-Type"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=cors_methods,
    allow_headers=cors_headers,
)

register_problem_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(projects.router, prefix="/api")
app.include_router(inspections.router, prefix="/api")
app.include_router(elements.router, prefix="/api")
app.include_router(viewer.router, prefix="/api")
app.include_router(system.router, prefix="/api")


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "TWX Asset Tracking API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
