"""
Rate Limiter Configuration

Guards the public, capability-gated calendar endpoint against token
guessing and runaway pollers. Supports Redis storage when REDIS_URL is set
(multiple instances), in-memory otherwise.

Clients are keyed on the socket peer address. X-Forwarded-For is honoured
only when TRUST_PROXY_HEADERS is set, and then only its last entry, the one
appended by our own proxy.
"""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from ..config import settings

logger = logging.getLogger(__name__)


def get_client_key(request: Request) -> str:
    if settings.trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
            if hops:
                return hops[-1]
    
    return get_remote_address(request)


def create_limiter() -> Limiter:
    """
    Create a rate limiter with appropriate storage backend.
    Uses Redis if REDIS_URL is configured, otherwise in-memory.
    """
    redis_url = os.getenv("REDIS_URL")
    
    if redis_url:
        logger.info("Using Redis rate limiter storage")
        return Limiter(key_func=get_client_key, storage_uri=redis_url)
    
    return Limiter(key_func=get_client_key)


# Global rate limiter instance
limiter = create_limiter()
