"""Shared slowapi limiter for the HTTP routes."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from media_gateway.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)
