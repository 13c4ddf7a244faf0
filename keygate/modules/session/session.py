import logging
import uuid
from enum import Enum
from typing import Literal, Union

from keygate.modules.metrics import session_validations, sessions_created
from keygate.modules.storage import NOT_FOUND, TTLStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Sentinel type for a session that is absent or expired."""

    INVALID = "INVALID"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return self.value


INVALID = SessionState.INVALID
Invalid = Literal[SessionState.INVALID]


class SessionModule:
    def __init__(self, store: TTLStore[int]):
        """
        Initialize session module.

        Args:
            store: TTL store holding session_id -> permission bitmask.
                   Its default TTL is the session lifetime.
        """
        self.store = store

    @property
    def session_ttl(self) -> float:
        return self.store.default_ttl

    async def create_session(self, permissions: int) -> str:
        """
        Create a new session carrying a permission bitmask.

        Args:
            permissions: Non-negative permission bitmask

        Returns:
            Session ID (UUID4, 122 random bits)

        Raises:
            ValueError: If permissions is not a non-negative integer
        """
        if isinstance(permissions, bool) or not isinstance(permissions, int) or permissions < 0:
            raise ValueError(f"Permissions must be a non-negative integer, got {permissions!r}")

        session_id = str(uuid.uuid4())
        self.store.set(session_id, permissions)

        sessions_created.inc()
        logger.info(f"New session {session_id[:8]}... (permissions={permissions})")
        return session_id

    async def validate_session(self, session_id: str) -> Union[int, Invalid]:
        """
        Validate a session and slide its expiration window.

        Every successful validation extends the session by the default TTL,
        so a session dies one TTL after its last use.

        Args:
            session_id: Session identifier

        Returns:
            Permission bitmask, or INVALID if the session is absent or expired
        """
        if not session_id or not self.store.exists(session_id):
            return self._invalid(session_id)

        # The key can expire or be revoked between calls
        if not self.store.refresh(session_id):
            return self._invalid(session_id)

        permissions = self.store.get(session_id)
        if permissions is NOT_FOUND:
            return self._invalid(session_id)

        session_validations.labels(result="valid").inc()
        logger.debug(f"Session {session_id[:8]}... valid")
        return permissions

    @staticmethod
    def authorize(permissions: Union[int, Invalid], required_bit: int) -> bool:
        """True if any bit of required_bit is granted by permissions."""
        if permissions is INVALID:
            return False
        return (permissions & required_bit) != 0

    async def revoke_session(self, session_id: str) -> bool:
        """
        End a session early. Idempotent.

        Returns:
            True if a live session was removed
        """
        removed = self.store.delete(session_id) is not NOT_FOUND
        if removed:
            logger.info(f"Session {session_id[:8]}... revoked")
        return removed

    def _invalid(self, session_id: str) -> Invalid:
        session_validations.labels(result="invalid").inc()
        logger.info(f"Session {(session_id or '')[:8]}... invalid/expired")
        return INVALID
