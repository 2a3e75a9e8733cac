"""Storage drivers, the backend registry and the caching/buffering layer."""

from .base import AbstractDatabase, BulkOperation
from .cache_layer import CacheAndBufferLayer, CacheSettings, Metrics
from .registry import BackendType, DEFAULT_BACKEND, parse_backend_type, resolve, supported_backends

__all__ = [
    "AbstractDatabase",
    "BulkOperation",
    "CacheAndBufferLayer",
    "CacheSettings",
    "Metrics",
    "BackendType",
    "DEFAULT_BACKEND",
    "parse_backend_type",
    "resolve",
    "supported_backends",
]
