"""
HACKLEDGER v1.0 — Custom Exceptions.

Typed error hierarchy. Every error is a rejected call: it is raised
before any state is written, so the ledger is left exactly as it was.
"""


class HackLedgerError(Exception):
    """Base exception for all HACKLEDGER errors."""


class ProjectNotFound(HackLedgerError):
    """Raised when a project id is 0 or beyond the registered range."""

    def __init__(self, project_id: int):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class AlreadyVotedForProject(HackLedgerError):
    """Raised when a voter votes twice for the same project."""

    def __init__(self, voter: str, project_id: int):
        self.voter = voter
        self.project_id = project_id
        super().__init__(f"{voter} already voted for project {project_id}")


class MaxVotesReached(HackLedgerError):
    """Raised when a voter has no votes left."""

    def __init__(self, voter: str, limit: int):
        self.voter = voter
        self.limit = limit
        super().__init__(f"{voter} already cast the maximum of {limit} votes")


class VotingAlreadyResolved(HackLedgerError):
    """Raised on any mutation attempted after resolution."""

    def __init__(self, message: str = "Voting has already been resolved"):
        super().__init__(message)


class VotingNotResolved(HackLedgerError):
    """Raised when a result is requested before resolution."""

    def __init__(self, message: str = "Voting has not been resolved yet"):
        super().__init__(message)


class NoVotesCast(HackLedgerError):
    """Raised when resolving with no projects or no voters."""

    def __init__(self, message: str = "Cannot resolve: no votes have been cast"):
        super().__init__(message)


class Unauthorized(HackLedgerError):
    """Raised when a non-administrator calls an admin-only operation."""

    def __init__(self, identity: str, operation: str):
        self.identity = identity
        self.operation = operation
        super().__init__(f"{identity!r} is not allowed to {operation}")


class ArrayLengthMismatch(HackLedgerError):
    """Raised when batch registration receives arrays of different lengths."""

    def __init__(self, lengths: dict[str, int]):
        self.lengths = lengths
        detail = ", ".join(f"{k}={v}" for k, v in lengths.items())
        super().__init__(f"Batch arrays differ in length ({detail})")


class TransferError(HackLedgerError):
    """Raised by a transfer sink when a payout cannot be delivered."""


class JournalError(HackLedgerError):
    """Raised when the event journal fails and has been rolled back.

    Wraps SQLite errors so storage details stay out of caller-facing
    messages.
    """
