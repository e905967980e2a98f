"""
Concurrent execution of build cycles.
"""

from .thread_pool import ManagedThreadPoolExecutor, ThreadPoolConfig

__all__ = [
    "ManagedThreadPoolExecutor",
    "ThreadPoolConfig",
]
