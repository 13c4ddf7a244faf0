"""
Keygate - token-for-session gatekeeper

Exchanges a long-lived opaque token for a short-lived session carrying a
permission bitmask, then enforces that session on every later request.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- storage: Ephemeral TTL key/value store and expiry reaper
- session: Session lifecycle (create, validate with sliding expiry, authorize, revoke)
- auth: Static token -> permission table
- middleware: Per-request session enforcement
- keyfile: Protected key file read/replace with backups
- metrics: Prometheus metrics
- config: Environment configuration
"""

__version__ = "1.0.0"
