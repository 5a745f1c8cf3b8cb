from slowapi import Limiter
from slowapi.util import get_remote_address
from loguru import logger

from core_portal.core.config import settings


def get_real_ip(request):
    """
    Client IP behind a proxy: leftmost X-Forwarded-For, then X-Real-IP,
    then the socket address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


def build_limiter() -> Limiter:
    enabled = not settings.TESTING

    if settings.REDIS_URL:
        logger.info("Initializing rate limiter with Redis storage")
        return Limiter(
            key_func=get_real_ip,
            storage_uri=settings.REDIS_URL,
            strategy="fixed-window",
            storage_options={"socket_connect_timeout": 5, "retry_on_timeout": True},
            enabled=enabled,
        )

    logger.warning("REDIS_URL not set. Using in-memory rate limiting.")
    return Limiter(key_func=get_real_ip, enabled=enabled)


limiter = build_limiter()
