"""
HTTP integrations for the monobank acquiring API
"""

from .http import HTTPClient, HTTPOptions
from .monobank import MonobankClient

__all__ = [
    "HTTPClient",
    "HTTPOptions",
    "MonobankClient",
]
