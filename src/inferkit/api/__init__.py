"""Application layer - dependencies and the service builder."""

from .dependencies import get_manager
from .service_builder import ServiceBuilder, ServiceInfo

__all__ = [
    "ServiceBuilder",
    "ServiceInfo",
    "get_manager",
]
