"""
API layer for MockLoop

Contains FastAPI routers for:
- Interview sessions (REST + WebSocket)
- Narration audio
"""

from mockloop.api.router import api_router

__all__ = ["api_router"]
