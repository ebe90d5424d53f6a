"""Advisory named mutex backed by a shared key-value store."""
from .config import RedisConfig
from .exceptions import DoubleLockError, MutexError, MutexTimeoutError
from .in_memory import InMemoryStore
from .mutex import AtomicMutex, Mutex, process_token
from .records import LockRecord
from .redis_store import RedisStore
from .store import AtomicKeyValueStore, KeyValueStore

__version__ = "0.1.0"
__all__ = [
    "AtomicKeyValueStore",
    "AtomicMutex",
    "DoubleLockError",
    "InMemoryStore",
    "KeyValueStore",
    "LockRecord",
    "Mutex",
    "MutexError",
    "MutexTimeoutError",
    "RedisConfig",
    "RedisStore",
    "process_token",
]
