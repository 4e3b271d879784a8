import os

from slowapi import Limiter
from slowapi.util import get_remote_address

REORDER_RATE_LIMIT = os.environ.get("REORDER_RATE_LIMIT", "60/minute")

limiter = Limiter(key_func=get_remote_address)
