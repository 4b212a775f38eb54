"""Rate limiting configuration using slowapi.

Module-level Limiter instance wired into the FastAPI app in main.py through
SlowAPIMiddleware; dashboard routes are read-heavy fan-outs, so they share
one default budget.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Default: 60 requests/minute per client IP for all endpoints.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)
