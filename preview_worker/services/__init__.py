"""
Services package for the document preview worker.

This package contains the pipeline components and their external
tool and service integrations.
"""

from .legacy import LegacyConverter
from .pipeline import JobRun, PreviewPipeline
from .queue import Delivery, RedisJobQueue
from .renderer import CarboneRenderer
from .routing import (
    LEGACY_EXTENSION,
    LEGACY_MIME_TYPE,
    MODERN_MIME_TYPE,
    ConversionRoute,
    requires_legacy_conversion,
    select_route,
)
from .status import StatusReporter
from .storage import StorageGateway
from .worker import WorkerPool

__all__ = [
    "CarboneRenderer",
    "ConversionRoute",
    "Delivery",
    "JobRun",
    "LEGACY_EXTENSION",
    "LEGACY_MIME_TYPE",
    "LegacyConverter",
    "MODERN_MIME_TYPE",
    "PreviewPipeline",
    "RedisJobQueue",
    "StatusReporter",
    "StorageGateway",
    "WorkerPool",
    "requires_legacy_conversion",
    "select_route",
]
