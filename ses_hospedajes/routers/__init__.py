from .jobs import router as jobs_router
from .send import router as send_router
from .reference import router as reference_router

__all__ = ["jobs_router", "send_router", "reference_router"]
