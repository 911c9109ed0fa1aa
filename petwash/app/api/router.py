"""
API Router.

Aggregates the HTTP endpoints served under the API prefix.
"""

from fastapi import APIRouter
from petwash.app.api.endpoints import auth, walks

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Walk-My-Pet endpoints (pets, walks, live updates)
router.include_router(walks.router)
