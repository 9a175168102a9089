from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate limiter, keyed by client IP address. Routes opt in with @limiter.limit.
limiter = Limiter(key_func=get_remote_address)
