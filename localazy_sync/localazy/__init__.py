"""Localazy API access - typed client and request throttling."""

from localazy_sync.localazy.client import LocalazyClient, HttpLocalazyClient
from localazy_sync.localazy.throttle import RequestThrottler, ThrottledLocalazyApi

__all__ = [
    "LocalazyClient",
    "HttpLocalazyClient",
    "RequestThrottler",
    "ThrottledLocalazyApi",
]
