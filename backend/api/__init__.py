"""
FairReview API Module
=====================
FastAPI routers for the FairReview API.
"""

from api.documents import router as documents_router
from api.history import router as history_router
from api.review import router as review_router
from api.rules import router as rules_router

__all__ = ["documents_router", "review_router", "rules_router", "history_router"]
