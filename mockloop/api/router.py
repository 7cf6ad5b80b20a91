"""
Main API router for MockLoop

Aggregates all API routes and provides the main application router.
"""

from fastapi import APIRouter

from mockloop.api.endpoints import interview, audio

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    interview.router,
    prefix="/interview",
    tags=["Interview"]
)

api_router.include_router(
    audio.router,
    prefix="/audio",
    tags=["Audio"]
)
