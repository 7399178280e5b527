"""ServiceRegistry module."""

from .registry import IServiceRegistry, ServiceRegistry

__all__ = ["IServiceRegistry", "ServiceRegistry"]
