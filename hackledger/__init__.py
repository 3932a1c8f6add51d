"""
HACKLEDGER — Tamper-evident project and vote ledger for hackathons.

Registers projects, records capped per-voter votes and resolves the
contest once: podium, winner and prize shares. Every state change is
sealed in a hash-chained event journal.
"""

__version__ = "1.0.0"

from hackledger.contest import Contest
from hackledger.exceptions import (
    AlreadyVotedForProject,
    ArrayLengthMismatch,
    HackLedgerError,
    MaxVotesReached,
    NoVotesCast,
    ProjectNotFound,
    Unauthorized,
    VotingAlreadyResolved,
    VotingNotResolved,
)
from hackledger.models import ProjectSubmission, VotingData

__all__ = [
    "Contest",
    "ProjectSubmission",
    "VotingData",
    "HackLedgerError",
    "ProjectNotFound",
    "AlreadyVotedForProject",
    "MaxVotesReached",
    "VotingAlreadyResolved",
    "VotingNotResolved",
    "NoVotesCast",
    "Unauthorized",
    "ArrayLengthMismatch",
    "__version__",
]
