"""
cache_components – tag-based caching engine with staged invalidation.

Import path convention::

    from cache_components.application.cache import CacheEngine, CacheKey
    from cache_components.config.settings import CacheSettings
    from cache_components.kernel.errors import ValidationError
    from cache_components.observability.logging import configure_logging
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
