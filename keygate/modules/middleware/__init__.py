"""
Session Middleware Module - Black Box Interface

Purpose: Enforce session permissions on every request
Interface: SessionAuthMiddleware (callable middleware), create_session_middleware()
Hidden: Cookie extraction, method -> permission mapping, error formatting

Token exchange (POST) and CORS preflight (OPTIONS) pass through untouched;
every other request needs a live session carrying the method's permission bit.
"""

import logging
from typing import Callable, Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from keygate.modules.auth import required_permission
from keygate.modules.session import INVALID, SessionModule

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "sessionId"
DEFAULT_SKIP_PATHS = ("/health", "/metrics")
UNCHECKED_METHODS = ("POST", "OPTIONS")


class SessionAuthMiddleware:
    """
    Cookie-based session enforcement for FastAPI applications.

    On success the request proceeds with request.state.session_id and
    request.state.permissions set for downstream handlers.
    """

    def __init__(
        self,
        session_module: SessionModule,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        skip_paths: Optional[Iterable[str]] = None,
        permission_for: Callable[[str], int] = required_permission,
    ):
        """
        Initialize session middleware.

        Args:
            session_module: SessionModule used to validate and authorize
            cookie_name: Cookie carrying the session ID
            skip_paths: Paths served without a session (health, metrics)
            permission_for: Maps an HTTP method to the bit it requires
        """
        self.session_module = session_module
        self.cookie_name = cookie_name
        self.skip_paths = set(DEFAULT_SKIP_PATHS if skip_paths is None else skip_paths)
        self.permission_for = permission_for

    def should_skip(self, request: Request) -> bool:
        return request.method.upper() in UNCHECKED_METHODS or request.url.path in self.skip_paths

    @staticmethod
    def _reject(status_code: int, message: str) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"message": message})

    async def __call__(self, request: Request, call_next):
        if self.should_skip(request):
            return await call_next(request)

        client_host = request.client.host if request.client else None
        session_id = request.cookies.get(self.cookie_name)

        if not session_id:
            logger.info(f"No sessionId sent ({request.method} {request.url.path} from {client_host})")
            return self._reject(401, "No sessionId sent")

        permissions = await self.session_module.validate_session(session_id)
        if permissions is INVALID:
            logger.warning(f"Unrecognized sessionId {session_id[:8]}... from {client_host}")
            return self._reject(400, "sessionId not recognized")

        required = self.permission_for(request.method)
        if not self.session_module.authorize(permissions, required):
            logger.warning(
                f"Permissions do not match up for session {session_id[:8]}... "
                f"({request.method} needs {required}, has {permissions})"
            )
            return self._reject(403, "Permission denied")

        request.state.session_id = session_id
        request.state.permissions = permissions
        return await call_next(request)


def create_session_middleware(
    session_module: SessionModule,
    cookie_name: str = DEFAULT_COOKIE_NAME,
    skip_paths: Optional[Iterable[str]] = None,
) -> SessionAuthMiddleware:
    """
    Factory function to create session enforcement middleware.

    Args:
        session_module: SessionModule instance
        cookie_name: Cookie carrying the session ID
        skip_paths: Paths that bypass session checks

    Returns:
        Configured SessionAuthMiddleware instance
    """
    return SessionAuthMiddleware(
        session_module=session_module,
        cookie_name=cookie_name,
        skip_paths=skip_paths,
    )


__all__ = [
    "DEFAULT_COOKIE_NAME",
    "SessionAuthMiddleware",
    "create_session_middleware",
]
