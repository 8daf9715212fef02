"""Per-client rate limiting (slowapi), wired into the app in main.py.

Write-heavy routes (uploads, manual reminder sweeps) tighten the default
with ``@limiter.limit(...)``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

DEFAULT_LIMIT = "60/minute"
UPLOAD_LIMIT = "20/minute"
SWEEP_LIMIT = "6/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_LIMIT],
)
