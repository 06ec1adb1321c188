"""
API routers for different endpoints.
"""

from .health import router as health_router
from .notifications import router as notifications_router
from .recommendations import router as recommendations_router
from .scheduler import router as scheduler_router

__all__ = [
    "health_router",
    "notifications_router",
    "recommendations_router",
    "scheduler_router",
]
