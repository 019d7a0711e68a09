"""
api/limiter.py -- Shared slowapi rate limiter instance.

Mounted as middleware in api/main.py and applied per-route in
api/routes/auth.py with @limiter.limit(). One shared instance means one
in-memory counter store; per-module instances would each count separately
and the limits would never trigger.

Counters live in process memory, so they reset on restart and are not shared
between instances.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Limit string for credential endpoints (login, registration), e.g. "10/minute".
AUTH_RATE_LIMIT = get_settings().auth_rate_limit
