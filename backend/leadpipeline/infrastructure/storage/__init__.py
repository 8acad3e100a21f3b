"""Storage adapters"""
from .memory_store import InMemoryCardStore, InMemoryRosterStore
from .supabase_store import SupabaseCardStore, SupabaseRosterStore
from .retry import with_retry

__all__ = [
    "InMemoryCardStore",
    "InMemoryRosterStore",
    "SupabaseCardStore",
    "SupabaseRosterStore",
    "with_retry",
]
