"""Rate limiter shared by the app and the endpoints that tighten it"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from utility_billing.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    enabled=settings.RATE_LIMIT_ENABLED,
)

# Credential endpoints
AUTH_LIMIT = "10/minute"
