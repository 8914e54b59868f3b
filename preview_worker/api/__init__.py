"""
HTTP endpoints exposed by the document preview worker.
"""

from .health import HealthContext, create_health_app

__all__ = ["HealthContext", "create_health_app"]
