"""
HACKLEDGER v1.0 — Treasury.

The value-transfer sink used to pay prizes. Resolution only needs
``transfer(target, amount) -> bool``; ``InMemoryTreasury`` is the
reference implementation used by tests and local runs.
"""

import logging
import threading
from typing import Protocol, runtime_checkable

from hackledger.exceptions import TransferError

logger = logging.getLogger("hackledger.treasury")


@runtime_checkable
class TransferSink(Protocol):
    """Pays ``amount`` to ``target``; returns False or raises TransferError on failure."""

    def transfer(self, target: str, amount: int) -> bool: ...


class InMemoryTreasury:
    """Balances held in a dict, debited from a single funded source.

    >>> t = InMemoryTreasury("sponsor", 300)
    >>> t.transfer("team-a", 100)
    True
    >>> t.balance_of("sponsor"), t.balance_of("team-a")
    (200, 100)
    """

    def __init__(self, source: str, funds: int = 0):
        if funds < 0:
            raise ValueError(f"funds must be non-negative, got {funds}")
        self.source = source
        self._balances: dict[str, int] = {source: funds}
        self._transfers: list[tuple[str, int]] = []
        self._lock = threading.Lock()

    def fund(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount must be non-negative, got {amount}")
        with self._lock:
            self._balances[self.source] += amount

    def transfer(self, target: str, amount: int) -> bool:
        if not target:
            raise TransferError("transfer target is empty")
        if amount <= 0:
            raise TransferError(f"transfer amount must be positive, got {amount}")

        with self._lock:
            if self._balances[self.source] < amount:
                logger.warning(
                    "Insufficient funds in %s: %d < %d", self.source, self._balances[self.source], amount
                )
                return False
            self._balances[self.source] -= amount
            self._balances[target] = self._balances.get(target, 0) + amount
            self._transfers.append((target, amount))

        logger.info("Transferred %d from %s to %s", amount, self.source, target)
        return True

    def balance_of(self, identity: str) -> int:
        with self._lock:
            return self._balances.get(identity, 0)

    @property
    def transfers(self) -> list[tuple[str, int]]:
        """Successful transfers in the order they happened."""
        with self._lock:
            return list(self._transfers)
