"""Error taxonomy of the monitoring session."""


class MonitorError(Exception):
    """Base class for monitor errors."""


class NotFoundError(MonitorError):
    """A service or method could not be resolved."""


class ServiceNotFoundError(NotFoundError):
    """No service registered under that name."""

    def __init__(self, service: str):
        super().__init__(f"service not found: {service}")
        self.service = service


class MethodNotFoundError(NotFoundError):
    """The service exposes no method with that name."""

    def __init__(self, service: str, method: str):
        super().__init__(f"method not found: {service}.{method}")
        self.service = service
        self.method = method


class SelectionError(MonitorError):
    """A method selection was rejected; the previous selection is kept."""


class SessionFatalError(MonitorError):
    """The monitoring session cannot continue (discovery lost, tracing failed)."""
