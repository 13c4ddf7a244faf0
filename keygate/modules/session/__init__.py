"""
Session Module - Black Box Interface

Purpose: Manage session lifecycle (token exchange -> short-lived session)
Interface: create_session(), validate_session(), authorize(), revoke_session()
Hidden: Session ID generation, TTL store usage, sliding expiration

Holds no state of its own; everything lives in the injected TTL store.
"""

from .session import INVALID, Invalid, SessionModule, SessionState

__all__ = ["SessionModule", "SessionState", "Invalid", "INVALID"]
