"""
HACKLEDGER v1.0 — Administrator Gate.

Admin-only operations ask an injected gate whether the caller may
proceed. The gate decides; the ledger only enforces.
"""

import logging
from typing import Iterable, Optional, Protocol, runtime_checkable

from hackledger import config
from hackledger.exceptions import Unauthorized

logger = logging.getLogger("hackledger.gate")


@runtime_checkable
class AdminGate(Protocol):
    """Capability check consulted by every admin-only operation."""

    def is_administrator(self, identity: str) -> bool: ...


class StaticAdminGate:
    """Gate backed by a fixed set of identities.

    Falls back to ``HACKLEDGER_ADMINS`` when no identities are given.
    """

    def __init__(self, admins: Optional[Iterable[str]] = None):
        source = config.ADMINS if admins is None else admins
        self._admins = frozenset(a for a in source if a)
        logger.debug("StaticAdminGate initialized with %d administrators", len(self._admins))

    def is_administrator(self, identity: str) -> bool:
        return identity in self._admins


def require_admin(gate: AdminGate, identity: str, operation: str) -> None:
    """Raise ``Unauthorized`` unless ``identity`` passes ``gate``."""
    if not gate.is_administrator(identity):
        logger.warning("Blocked %s by non-administrator %r", operation, identity)
        raise Unauthorized(identity, operation)
