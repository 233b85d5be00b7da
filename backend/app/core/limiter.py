"""Rate limiter singleton: import from here to avoid circular deps."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.config import settings


def client_address(request: Request) -> str:
    """Client IP for rate limiting; behind the ingress, the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or get_remote_address(request)


limiter = Limiter(
    key_func=client_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.APP_ENV != "test",
)
