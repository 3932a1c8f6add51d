"""
HACKLEDGER v1.0 — Resolution Engine.

Freezes the ledger, ranks projects on a fixed-size podium, names the
winner and pays the prize shares.

Ranking scans projects in ascending id order and only lets a project
into a slot when its count is strictly greater than the slot's. An
earlier project with an equal count is therefore never displaced, which
is what makes the lower id win a tie. Resolution with and without a
prize pool share this one routine.

Payouts run strictly after the ledger is frozen and the lock released.
A failed transfer does not undo resolution: it is recorded as a
``failed`` receipt, journaled, and can be re-issued later with
``retry_failed_payouts``.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from hackledger import config
from hackledger.exceptions import (
    NoVotesCast,
    TransferError,
    VotingAlreadyResolved,
    VotingNotResolved,
)
from hackledger.gate import AdminGate, require_admin
from hackledger.journal import (
    PRIZE_POOL_CONFIGURED,
    PRIZE_TRANSFER_FAILED,
    PRIZE_TRANSFERRED,
    VOTING_RESOLVED,
    EventJournal,
)
from hackledger.metrics import metrics
from hackledger.models import PayoutView, ResolutionResult
from hackledger.state import LedgerState, PayoutReceipt, PrizePool, Project
from hackledger.treasury import TransferSink

logger = logging.getLogger("hackledger.resolution")


class Podium:
    """Fixed number of ranked slots, highest count first.

    >>> p = Podium(3)
    >>> for pid, votes in [(1, 3), (2, 3), (3, 5), (4, 0)]:
    ...     p.offer(pid, votes)
    >>> p.ranked()
    [(3, 5), (1, 3), (2, 3)]
    """

    def __init__(self, size: int = 3):
        if size < 1:
            raise ValueError(f"podium size must be at least 1, got {size}")
        self.size = size
        self._slots: list[tuple[int, int]] = [(0, 0)] * size

    def offer(self, project_id: int, votes: int) -> None:
        # Zero-vote projects never place; the strict ">" keeps earlier ties in place.
        if votes <= 0:
            return
        for i, (_, slot_votes) in enumerate(self._slots):
            if votes > slot_votes:
                self._slots.insert(i, (project_id, votes))
                self._slots.pop()
                return

    def ranked(self) -> list[tuple[int, int]]:
        """Occupied slots as (project_id, votes), best first."""
        return [slot for slot in self._slots if slot[0] != 0]


def rank_projects(projects: Iterable[Project], size: int = 3) -> list[tuple[int, int]]:
    """Podium for ``projects``, which must be in ascending id order."""
    podium = Podium(size)
    for project in projects:
        podium.offer(project.id, project.vote_count)
    return podium.ranked()


class ResolutionEngine:
    """One-time, irreversible resolution of the contest."""

    def __init__(
        self,
        state: LedgerState,
        journal: EventJournal,
        gate: AdminGate,
        sink: Optional[TransferSink] = None,
        podium_size: Optional[int] = None,
    ):
        self._state = state
        self._journal = journal
        self._gate = gate
        self._sink = sink
        self.podium_size = podium_size if podium_size is not None else config.PODIUM_SIZE
        if self.podium_size < 1:
            raise ValueError(f"podium size must be at least 1, got {self.podium_size}")

    # ─── Prize pool ───────────────────────────────────────────────

    def configure_prize_pool(self, caller: str, source: str, amount: int) -> PrizePool:
        """Set (or replace) the prize pool paid out at resolution."""
        require_admin(self._gate, caller, "configure the prize pool")
        if amount < 0:
            raise ValueError(f"prize amount must be non-negative, got {amount}")
        if self._sink is None:
            raise ValueError("no transfer sink configured; prizes cannot be paid")

        with self._state.lock:
            if self._state.resolved:
                raise VotingAlreadyResolved("Cannot change the prize pool after resolution")
            pool = PrizePool(source=source, amount=amount)
            entry = self._journal.append(
                PRIZE_POOL_CONFIGURED, {"source": source, "amount": amount}, publish=False
            )
            self._state.prize_pool = pool
            logger.info("Prize pool configured: %d from %s", amount, source)

        self._journal.publish(entry)
        return pool

    @property
    def prize_pool(self) -> Optional[PrizePool]:
        return self._state.prize_pool

    # ─── Resolution ───────────────────────────────────────────────

    def resolve_voting(self, caller: str) -> ResolutionResult:
        """Freeze voting, rank the podium, name the winner, pay prizes."""
        require_admin(self._gate, caller, "resolve voting")
        state = self._state

        with state.lock:
            if state.resolved:
                raise VotingAlreadyResolved()
            if state.project_count == 0 or state.total_voters == 0:
                raise NoVotesCast()

            ordered = [state.projects[i] for i in range(1, state.project_count + 1)]
            podium = rank_projects(ordered, self.podium_size)
            winner = state.projects[podium[0][0]]
            receipts = self._plan_payouts(podium)

            entry = self._journal.append(
                VOTING_RESOLVED,
                {
                    "winner_id": winner.id,
                    "title": winner.title,
                    "vote_count": winner.vote_count,
                    "podium": [pid for pid, _ in podium],
                    "payouts": [r.to_dict() for r in receipts],
                },
                publish=False,
            )

            state.resolved = True
            state.winner_id = winner.id
            state.podium = [pid for pid, _ in podium]
            state.payouts = receipts
            logger.info(
                "Voting resolved: winner #%d %r with %d votes (podium %s)",
                winner.id, winner.title, winner.vote_count, state.podium,
            )

        self._journal.publish(entry)
        # Ledger is final from here on; only now talk to the sink.
        self._execute_payouts(receipts)

        return self._result(winner)

    def _plan_payouts(self, podium: list[tuple[int, int]]) -> list[PayoutReceipt]:
        pool = self._state.prize_pool
        if pool is None:
            return []

        share = pool.amount // self.podium_size
        if share == 0:
            logger.warning("Prize pool of %d is too small to split %d ways", pool.amount, self.podium_size)
            return []

        receipts = []
        for rank, (project_id, votes) in enumerate(podium, start=1):
            project = self._state.projects[project_id]
            if votes == 0 or not project.has_payout_target():
                logger.info("Rank %d (#%d) has no payout target; share withheld", rank, project_id)
                continue
            receipts.append(PayoutReceipt(rank=rank, project_id=project_id, recipient=project.recipient, amount=share))
        return receipts

    def _execute_payouts(self, receipts: list[PayoutReceipt]) -> None:
        for receipt in receipts:
            error = None
            t0 = time.monotonic()
            try:
                ok = bool(self._sink.transfer(receipt.recipient, receipt.amount))
            except TransferError as e:
                ok = False
                error = str(e)
            except Exception as e:
                # Resolution is already committed; an unexpected sink error
                # only fails this receipt.
                ok = False
                error = f"{type(e).__name__}: {e}"
                logger.warning("Transfer sink raised for rank %d (#%d)", receipt.rank, receipt.project_id, exc_info=True)
            metrics.observe("hackledger_transfer_seconds", time.monotonic() - t0)
            if not ok and error is None:
                error = "transfer rejected by sink"

            with self._state.lock:
                receipt.attempts += 1
                receipt.status = "paid" if ok else "failed"
                receipt.error = error
                kind = PRIZE_TRANSFERRED if ok else PRIZE_TRANSFER_FAILED
                entry = self._journal.append(kind, receipt.to_dict(), publish=False)

            self._journal.publish(entry)

            metrics.inc("hackledger_payouts_total", labels={"status": receipt.status})
            if ok:
                logger.info("Paid %d to %s for rank %d (#%d)", receipt.amount, receipt.recipient, receipt.rank, receipt.project_id)
            else:
                logger.warning(
                    "Payout of %d to %s for rank %d failed: %s (kept for retry)",
                    receipt.amount, receipt.recipient, receipt.rank, error,
                )

    def retry_failed_payouts(self, caller: str) -> list[PayoutView]:
        """Re-issue every failed payout once. Returns the receipts retried."""
        require_admin(self._gate, caller, "retry payouts")
        with self._state.lock:
            if not self._state.resolved:
                raise VotingNotResolved()
            retry = [r for r in self._state.payouts if r.status == "failed"]
            # Claimed before the lock drops so a concurrent retry skips them.
            for receipt in retry:
                receipt.status = "pending"

        self._execute_payouts(retry)
        with self._state.lock:
            return [PayoutView(**r.to_dict()) for r in retry]

    # ─── Reads ────────────────────────────────────────────────────

    def get_podium(self) -> tuple[int, ...]:
        with self._state.lock:
            return tuple(self._state.podium)

    def get_payouts(self) -> list[PayoutView]:
        with self._state.lock:
            return [PayoutView(**r.to_dict()) for r in self._state.payouts]

    @property
    def resolved(self) -> bool:
        return self._state.resolved

    def _result(self, winner: Project) -> ResolutionResult:
        with self._state.lock:
            return ResolutionResult(
                winner_id=winner.id,
                winner_title=winner.title,
                winner_votes=winner.vote_count,
                podium=tuple(self._state.podium),
                payouts=tuple(PayoutView(**r.to_dict()) for r in self._state.payouts),
            )
