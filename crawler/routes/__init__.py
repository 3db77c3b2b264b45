"""
API route modules.
"""

from .misc import router as misc_router
from .jobs import router as jobs_router
from .queue import router as queue_router

__all__ = [
    "misc_router",
    "jobs_router",
    "queue_router",
]
