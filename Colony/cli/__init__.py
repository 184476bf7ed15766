"""
Colony CLI
==========

Usage:
    colony validate FILE [--min-score N]
    colony compress FILE --max-units N
    colony resources
    python -m Colony.cli --help
"""

from Colony import __version__

__all__ = ['__version__']
