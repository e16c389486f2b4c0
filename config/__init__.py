# This file makes the 'config' directory a Python package.
# It exposes the singleton 'settings' instance and the per-run options for easy, clean importing.

from .settings import settings, configure_logging
from .processing import AllocationPolicy, ProcessingConfig, UnmatchedPolicy

__all__ = ["settings", "configure_logging", "AllocationPolicy", "ProcessingConfig", "UnmatchedPolicy"]
