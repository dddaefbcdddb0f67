from slowapi import Limiter
from slowapi.util import get_remote_address

from sitepulse.core.config import settings

# Shared across workers through Redis; tests use REDIS_URL=memory://
limiter = Limiter(key_func=get_remote_address, storage_uri=settings.REDIS_URL)
