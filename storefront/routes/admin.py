import hashlib
import hmac
import logging
from datetime import timedelta

from fastapi import APIRouter, HTTPException, Request

from storefront.config import settings
from storefront.schemas.orders_schemas import AdminLoginRequest
from storefront.utils.rate_limit import LoginRateLimiter
from storefront.utils.token import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()

# process-wide; see LoginRateLimiter
login_limiter = LoginRateLimiter(
    max_attempts=settings.ADMIN_MAX_LOGIN_ATTEMPTS,
    window_seconds=settings.ADMIN_LOGIN_WINDOW_SECONDS,
)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/login")
def admin_login(data: AdminLoginRequest, request: Request):
    client_ip = _client_ip(request)

    if not login_limiter.hit(client_ip):
        logger.warning(f"Admin login rate limit hit from {client_ip}")
        raise HTTPException(
            status_code=429,
            detail="Too many attempts. Please try again later.",
            headers={"Retry-After": str(login_limiter.retry_after(client_ip))},
        )

    if not settings.ADMIN_KEY_HASH:
        raise HTTPException(503, "Admin access not configured")

    logger.info(f"Admin login attempt from IP: {client_ip}")
    key_hash = hashlib.sha256(data.admin_key.encode("utf-8")).hexdigest()

    if not hmac.compare_digest(key_hash, settings.ADMIN_KEY_HASH.lower()):
        raise HTTPException(401, "Invalid admin key")

    login_limiter.reset(client_ip)
    token = create_access_token(
        {"sub": "admin", "role": "admin"},
        expires_delta=timedelta(hours=8),
    )
    return {"access_token": token, "token_type": "bearer"}
