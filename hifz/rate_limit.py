"""Shared slowapi limiter, keyed by client IP."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from hifz.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.DEFAULT_RATE_LIMIT])
