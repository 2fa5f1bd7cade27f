"""
Main API router.
"""

from fastapi import APIRouter
from recurwise.api import suggestions

api_router = APIRouter()

api_router.include_router(suggestions.router)
