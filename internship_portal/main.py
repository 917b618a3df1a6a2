"""
Internship Submission Portal - Main Application

FastAPI backend with:
- MongoDB for profiles, assignments, submissions and leaderboards
- Identity-provider JWTs for students and staff
- Google Drive for uploaded files

Run: uvicorn internship_portal.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from internship_portal.api.routes import api_router
from internship_portal.core.config import get_settings
from internship_portal.core.exceptions import PortalError
from internship_portal.db.mongodb import init_mongo_indexes, test_mongo_connection

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Internship Submission Portal",
    description="""
    Students submit assignment files; staff manage assignments and review.

    ## Features
    - **Onboarding**: one profile per student, bound to an internship track
    - **Assignments**: classwork and homework per track, optional deadline
    - **Submissions**: one per student per assignment, file hosted on Drive
    - **Leaderboards**: ranked by average response time, then submission count
    - **Admin**: grouped review, CSV export, leaderboard rebuild
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
        headers=exc.headers,
    )


# Startup event
@app.on_event("startup")
def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
    except PyMongoError as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/health", tags=["Health"])
def health_check():
    """Detailed health check."""
    mongo_ok = test_mongo_connection()
    return {
        "status": "healthy" if mongo_ok else "degraded",
        "mongodb": "connected" if mongo_ok else "disconnected"
    }
