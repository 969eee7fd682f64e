"""Tool framework. Import tool modules here to register them."""

# Import tool modules so their @registry.tool() decorators execute.
from redis_memory.tools import memory_tools  # noqa: F401
from redis_memory.tools.registry import registry

__all__ = ["registry"]
