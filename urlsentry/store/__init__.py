"""Record stores and change feeds for URL Sentry."""

from .base import ChangeEvent, ChangeFeed, RecordStore, Subscription
from .local import LocalStore
from .supabase import SupabaseRealtime, SupabaseStore

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "RecordStore",
    "Subscription",
    "LocalStore",
    "SupabaseRealtime",
    "SupabaseStore",
]
