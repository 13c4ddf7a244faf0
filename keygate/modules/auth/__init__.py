"""
Authentication Module - Black Box Interface

Purpose: Resolve long-lived tokens to permission bitmasks
Interface: TokenTable.load(), resolve(); Permission; required_permission()
Hidden: Token file format, env parsing, validation

Can be replaced with any token source (database, external service) without
affecting the session module.
"""

from .auth import (
    METHOD_PERMISSIONS,
    Permission,
    TokenTable,
    TokenTableError,
    required_permission,
)

__all__ = [
    "METHOD_PERMISSIONS",
    "Permission",
    "TokenTable",
    "TokenTableError",
    "required_permission",
]
