"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount SlowAPIMiddleware) and by the route
modules (to apply per-route limits with @limiter.limit()). One shared
instance means one shared in-memory counter store; per-module instances
would each count separately and the limits would never trigger.

Limits are keyed by client IP. The login and register limits come from
Settings (LOGIN_RATE_LIMIT, REGISTER_RATE_LIMIT); RATE_LIMIT_ENABLED=false
turns every limit off.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
