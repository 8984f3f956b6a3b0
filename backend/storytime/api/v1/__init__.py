"""API v1 routing configuration.

This module defines all v1 API routes.
"""

from fastapi import APIRouter

from storytime.api.v1 import users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
