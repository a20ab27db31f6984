"""API routers."""

from app.routers.certifications import router as certifications_router
from app.routers.reminders import router as reminders_router

__all__ = [
    "certifications_router",
    "reminders_router",
]
