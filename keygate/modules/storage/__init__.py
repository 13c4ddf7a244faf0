"""
Storage Module - Black Box Interface

Purpose: Hold ephemeral key/value state with per-key expiration
Interface: TTLStore.set(), get(), exists(), refresh(), delete(), pop_dropped(); ExpiryReaper
Hidden: Locking, deadline bookkeeping, background sweeping

Can be replaced with any backend offering the same TTL semantics (e.g. Redis)
without affecting other modules.
"""

from .store import NOT_FOUND, Entry, ExpiryReaper, Missing, NotFound, TTLStore

__all__ = ["TTLStore", "ExpiryReaper", "Entry", "Missing", "NotFound", "NOT_FOUND"]
