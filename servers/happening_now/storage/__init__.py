"""Persistence collaborators: the result cache and the community event table."""

from .base import CacheStore, CommunityEventStore, StoreError, TableNotProvisionedError
from .memory import InMemoryCacheStore, InMemoryCommunityStore
from .postgrest import PostgrestCacheStore, PostgrestClient, PostgrestCommunityStore

__all__ = [
    "CacheStore",
    "CommunityEventStore",
    "StoreError",
    "TableNotProvisionedError",
    "InMemoryCacheStore",
    "InMemoryCommunityStore",
    "PostgrestCacheStore",
    "PostgrestClient",
    "PostgrestCommunityStore",
]
