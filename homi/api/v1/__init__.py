"""
API v1 routes.
"""

from fastapi import APIRouter

from homi.api.v1 import auth

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
