"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from internship_portal.api.routes.auth_routes import router as auth_router
from internship_portal.api.routes.student_routes import router as student_router
from internship_portal.api.routes.admin_routes import router as admin_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(student_router)
api_router.include_router(admin_router)
