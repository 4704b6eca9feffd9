"""Rate limiter for credential endpoints.

Complements, and does not replace, the per-account email-code cooldown.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate limiter instance - shared across routers
limiter = Limiter(key_func=get_remote_address)
