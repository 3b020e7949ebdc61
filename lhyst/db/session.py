from lhyst.core import config
from lhyst.db.base import CodeStore
from lhyst.db.memory import InMemoryStore
from lhyst.db.supabase import SupabaseStore

_memory_store = None


def get_store() -> CodeStore:
    """
    Store dependency for the routes.
    The in-memory store is a process-wide singleton so dev state survives
    between requests. The Supabase store holds no connection state and is
    built per request from the current environment.
    """
    global _memory_store
    if config.use_in_memory_store():
        if _memory_store is None:
            _memory_store = InMemoryStore()
        return _memory_store
    return SupabaseStore()
