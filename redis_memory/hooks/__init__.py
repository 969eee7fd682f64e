"""Host lifecycle hooks. Import handler modules here to register them."""

from redis_memory.hooks import handlers  # noqa: F401
from redis_memory.hooks.registry import hook_registry

__all__ = ["hook_registry"]
