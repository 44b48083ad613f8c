from auctionhouse.core.config import settings
from auctionhouse.core.database import Base, async_session_maker, engine, get_db
from auctionhouse.core.redis import close_redis, get_redis
from auctionhouse.core.security import create_access_token, decode_access_token

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "get_redis",
    "close_redis",
    "create_access_token",
    "decode_access_token",
]
