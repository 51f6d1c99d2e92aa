"""
Trawl Worker Package.

Background task worker (arq) and operator command line.
"""

__version__ = "0.1.0"
