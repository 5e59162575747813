"""
Remote store backends.

The drain engine and the workflow depend only on :class:`RemoteStore`;
:class:`SupabaseRemoteStore` is the production implementation.
"""

from .base import RemoteStore
from .resilience import CircuitBreaker, CircuitState, RetryConfig, retry_with_backoff
from .supabase import SupabaseRemoteStore

__all__ = [
    "RemoteStore",
    "SupabaseRemoteStore",
    "CircuitBreaker",
    "CircuitState",
    "RetryConfig",
    "retry_with_backoff",
]
