"""API route modules."""

from .health import router as health_router
from .plans import router as plans_router
from .reminders import router as reminders_router
from .timeline import router as timeline_router

__all__ = ["health_router", "plans_router", "reminders_router", "timeline_router"]
