from .backends import MemorySessionBackend, RedisSessionBackend, SessionBackend
from .session_store import SESSION_KEY_TEMPLATE, SessionStore, session_key

__all__ = [
    "MemorySessionBackend",
    "RedisSessionBackend",
    "SessionBackend",
    "SESSION_KEY_TEMPLATE",
    "SessionStore",
    "session_key",
]
