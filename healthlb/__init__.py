"""
healthlb: a round-robin HTTP load balancer.

Requests are forwarded to a fixed set of backends, skipping those whose
``/_health`` endpoint did not report ``{"state": "healthy"}`` on the last probe.
"""

from .backends import NO_HEALTHY_BACKEND, BackendRegistry
from .dispatcher import Dispatcher, ProxyRequest, ProxyResponse
from .errors import BackendUnavailable, ConfigError, ProbeFailed
from .health import HealthMonitor
from .main import create_app
from .settings import Settings

__all__ = [
    "NO_HEALTHY_BACKEND",
    "BackendRegistry",
    "BackendUnavailable",
    "ConfigError",
    "Dispatcher",
    "HealthMonitor",
    "ProbeFailed",
    "ProxyRequest",
    "ProxyResponse",
    "Settings",
    "create_app",
]
