"""API v1 module."""

from fastapi import APIRouter

from school_portal.api.v1.endpoints import audit, calendar, exams, report_cards

api_router = APIRouter()

# Include routers
api_router.include_router(report_cards.router)
api_router.include_router(calendar.router)
api_router.include_router(exams.router)
api_router.include_router(audit.router)
