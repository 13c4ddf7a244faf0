"""
Token table for Keygate.

Maps long-lived opaque tokens to permission bitmasks. The table is static for
the life of the process and is consulted only when a client exchanges a token
for a session; every later request is checked against the session instead.
"""

import json
import logging
import os
from enum import IntFlag
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class Permission(IntFlag):
    """Capabilities a session can carry."""

    EXCHANGE = 1
    READ = 2
    WRITE = 4


# Bit an HTTP method needs; anything unlisted needs 0 and is never authorized
METHOD_PERMISSIONS: Dict[str, int] = {
    "POST": Permission.EXCHANGE,
    "GET": Permission.READ,
    "PUT": Permission.WRITE,
}


def required_permission(method: str) -> int:
    return int(METHOD_PERMISSIONS.get(method.upper(), 0))


class TokenTableError(ValueError):
    """Raised when the token table cannot be loaded."""


class TokenTable:
    """Static token -> permission bitmask lookup."""

    def __init__(self, tokens: Optional[Dict[str, int]] = None):
        self._tokens: Dict[str, int] = {}
        for token, permissions in (tokens or {}).items():
            self._tokens[token] = self._check_permissions(token, permissions)

    @staticmethod
    def _check_permissions(token: str, permissions) -> int:
        if isinstance(permissions, bool) or not isinstance(permissions, int) or permissions < 0:
            raise TokenTableError(
                f"Permissions for token {token[:8]}... must be a non-negative integer, "
                f"got {permissions!r}"
            )
        return permissions

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TokenTable":
        """
        Load a JSON object of {token: bitmask}.

        Raises:
            TokenTableError: If the file is missing, unparsable or malformed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TokenTableError(f"Failed to load token table from {path}: {e}") from e

        if not isinstance(data, dict):
            raise TokenTableError(f"Token table {path} must be a JSON object")

        table = cls(data)
        logger.info(f"Loaded {len(table)} tokens from {path}")
        return table

    @classmethod
    def from_env(cls, tokens_env: Optional[str] = None) -> "TokenTable":
        """
        Parse tokens from an environment value.

        Format: TOKENS="token1:6,token2:2" (bitmask after the last colon)
        """
        if tokens_env is None:
            tokens_env = os.environ.get("TOKENS", "")

        tokens: Dict[str, int] = {}
        for entry in tokens_env.split(","):
            entry = entry.strip()
            if not entry:
                continue
            if ":" not in entry:
                raise TokenTableError(f"Token entry {entry[:8]}... is missing ':<permissions>'")

            token, permissions = entry.rsplit(":", 1)
            try:
                tokens[token.strip()] = int(permissions)
            except ValueError as e:
                raise TokenTableError(
                    f"Permissions for token {token[:8]}... must be an integer"
                ) from e

        return cls(tokens)

    @classmethod
    def load(cls, token_file: Optional[str], tokens_env: Optional[str] = None) -> "TokenTable":
        """
        Build the table from the token file, with env tokens layered on top.

        The file may be absent only when env tokens are given.
        """
        table = cls()
        if token_file and Path(token_file).is_file():
            table = cls.from_file(token_file)
        elif not tokens_env:
            raise TokenTableError(
                f"Token file {token_file} not found and TOKENS is not set. "
                "Provide a JSON token table or TOKENS=token:permissions,..."
            )

        if tokens_env:
            table.update(cls.from_env(tokens_env))
        return table

    def update(self, other: "TokenTable") -> None:
        self._tokens.update(other._tokens)

    def resolve(self, token: str) -> Optional[int]:
        """
        Look up the permissions granted to a token.

        Returns:
            Permission bitmask, or None for an empty or unknown token
        """
        if not token:
            return None
        return self._tokens.get(token)

    def __contains__(self, token: str) -> bool:
        return token in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)
