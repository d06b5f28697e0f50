"""
====================================================================
RATE LIMITING MIDDLEWARE
====================================================================
Rate limiting por IP. Protege o login contra brute force e a API
contra abuso.
====================================================================
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import logging
import os

logger = logging.getLogger(__name__)


# Formato: "X/period" onde period pode ser: second, minute, hour, day
RATE_LIMITS = {
    "auth": os.environ.get("RATE_LIMIT_AUTH", "10/minute"),
    "default": os.environ.get("RATE_LIMIT_DEFAULT", "100/minute"),
}


def _get_client_ip(request: Request) -> str:
    """
    Obtém o IP real do cliente, considerando proxies.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMITS["default"]],
    headers_enabled=False,
    strategy="fixed-window"
)


def limit_auth():
    """Rate limit para endpoints de autenticação."""
    return limiter.limit(RATE_LIMITS["auth"])


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Handler para quando o rate limit é excedido.
    Loga o evento e retorna resposta 429.
    """
    logger.warning(
        f"Rate limit excedido | IP: {_get_client_ip(request)} | Path: {request.url.path} | "
        f"Limite: {exc.detail}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Demasiadas requisições. Por favor aguarde.",
            "detail": str(exc.detail),
        },
        headers={"Retry-After": "60"}
    )
