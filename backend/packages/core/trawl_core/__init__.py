"""
Trawl Core Package.

This package contains feed polling and discovery logic, service classes,
and shared schemas for the Trawl application.
"""

__version__ = "0.1.0"

from .logging_config import init_logging, get_logger
from .services.search_providers import SearchProviderError

__all__ = ["init_logging", "get_logger", "SearchProviderError"]
