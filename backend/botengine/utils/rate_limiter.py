# /botengine/utils/rate_limiter.py

from slowapi import Limiter
from botengine.utils.request_utils import get_remote_address
from botengine.config.settings import settings

# Shared limiter instance; main.py and the routes both import it from here
# to avoid circular imports.

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.environment != "test",
)
