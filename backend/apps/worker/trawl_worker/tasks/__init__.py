"""
Task modules for background processing.

This package contains all background task implementations.
"""

from . import feed_discovery, feed_poller

__all__ = ["feed_poller", "feed_discovery"]
