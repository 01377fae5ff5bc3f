"""HTTP clients for the dependency analysis backend."""

from .backend_client import BackendClient

__all__ = [
    "BackendClient",
]
