"""
API Dependencies

Provides dependency injection for API endpoints.
Manages singleton instances of core components.
"""

from mockloop.config.settings import get_settings
from mockloop.core.provider_router import ProviderRouter
from mockloop.core.sessions import SessionRegistry
from mockloop.core.tracing import flush_langfuse


# ============================================================================
# SINGLETON INSTANCES
# ============================================================================

_router: ProviderRouter | None = None
_registry: SessionRegistry | None = None


def get_router() -> ProviderRouter:
    """Get the provider router singleton."""
    global _router

    if _router is None:
        _router = ProviderRouter.from_settings(get_settings())

    return _router


def get_registry() -> SessionRegistry:
    """
    Get the session registry singleton.

    Lazily builds the router, question bank, finalizer and result sink.
    """
    global _registry

    if _registry is None:
        _registry = SessionRegistry(router=get_router(), settings=get_settings())

    return _registry


async def cleanup():
    """Cleanup resources on shutdown."""
    global _router, _registry

    if _registry:
        await _registry.close()
        _registry = None

    if _router:
        await _router.close()
        _router = None

    flush_langfuse()
