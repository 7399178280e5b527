"""Simulated bus for demos and tests."""

from .sim import BUILTIN_METHODS, DEFAULT_SERVICES, SimulatedBus, SimulatedService

__all__ = ["BUILTIN_METHODS", "DEFAULT_SERVICES", "SimulatedBus", "SimulatedService"]
