"""Query layer — read-only snapshots for dashboards and voters."""

from __future__ import annotations

from dataclasses import replace

from hackledger.exceptions import VotingNotResolved
from hackledger.models import ProjectView, VotingData
from hackledger.state import LedgerState, Project


class QueryService:
    def __init__(self, state: LedgerState):
        self._state = state

    def get_voting_data(self, viewer: str) -> VotingData:
        """Everything a dashboard needs, read in one pass under the lock."""
        state = self._state
        with state.lock:
            projects = tuple(
                ProjectView(**state.projects[i].to_dict())
                for i in range(1, state.project_count + 1)
            )
            return VotingData(
                projects=projects,
                total_votes=sum(p.vote_count for p in projects),
                total_voters=state.total_voters,
                my_votes=state.history_of(viewer),
                resolved=state.resolved,
                winner_id=state.winner_id if state.resolved else 0,
            )

    def get_total_votes(self) -> int:
        """Sum of all project tallies, recomputed on every call."""
        with self._state.lock:
            return self._state.total_votes()

    def get_leaderboard(self) -> list[Project]:
        """Projects by descending votes; lower id first on ties."""
        with self._state.lock:
            projects = [replace(p) for p in self._state.projects.values()]
        return sorted(projects, key=lambda p: (-p.vote_count, p.id))

    def get_winner(self) -> Project:
        with self._state.lock:
            if not self._state.resolved:
                raise VotingNotResolved()
            return replace(self._state.projects[self._state.winner_id])
