"""Project Registry — registration, sequential ids, lookup."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional, Sequence, Union

from hackledger.exceptions import ArrayLengthMismatch, ProjectNotFound, VotingAlreadyResolved
from hackledger.gate import AdminGate, require_admin
from hackledger.journal import PROJECT_REGISTERED, EventEntry, EventJournal
from hackledger.metrics import metrics
from hackledger.models import ProjectSubmission
from hackledger.state import LedgerState, Project

logger = logging.getLogger("hackledger.registry")

SubmissionLike = Union[ProjectSubmission, Mapping[str, Any]]


class ProjectRegistry:
    """Owns the set of registered projects and hands out their ids."""

    def __init__(self, state: LedgerState, journal: EventJournal, gate: AdminGate):
        self._state = state
        self._journal = journal
        self._gate = gate

    @property
    def project_count(self) -> int:
        return self._state.project_count

    def register_project(
        self,
        caller: str,
        submission: Optional[SubmissionLike] = None,
        **fields: Any,
    ) -> int:
        """Register one project and return its id.

        Fields come either as a ``ProjectSubmission`` / mapping or as
        keyword arguments (``title=..., recipient=...``).
        """
        require_admin(self._gate, caller, "register projects")
        sub = self._coerce(submission, fields)

        with self._state.lock:
            self._ensure_open()
            ids, entries = self._insert([sub])

        self._publish(entries)
        return ids[0]

    def register_projects(
        self,
        caller: str,
        titles: Sequence[str],
        descriptions: Sequence[str],
        team_names: Sequence[str],
        categories: Sequence[str],
        image_urls: Sequence[str],
        demo_urls: Sequence[str],
        repo_urls: Sequence[str],
        recipients: Sequence[str],
    ) -> list[int]:
        """Register a batch from parallel arrays, all or nothing.

        Ids are assigned in array order.
        """
        require_admin(self._gate, caller, "register projects")

        columns = {
            "titles": titles,
            "descriptions": descriptions,
            "team_names": team_names,
            "categories": categories,
            "image_urls": image_urls,
            "demo_urls": demo_urls,
            "repo_urls": repo_urls,
            "recipients": recipients,
        }
        lengths = {name: len(col) for name, col in columns.items()}
        if len(set(lengths.values())) > 1:
            logger.info("Rejected batch registration: %s", lengths)
            raise ArrayLengthMismatch(lengths)

        # Validate every row before touching state.
        subs = [
            ProjectSubmission(
                title=titles[i],
                description=descriptions[i],
                team_name=team_names[i],
                category=categories[i],
                image_url=image_urls[i],
                demo_url=demo_urls[i],
                repo_url=repo_urls[i],
                recipient=recipients[i],
            )
            for i in range(len(titles))
        ]

        with self._state.lock:
            self._ensure_open()
            ids, entries = self._insert(subs)

        self._publish(entries)
        return ids

    def get_project(self, project_id: int) -> Project:
        """A copy of the stored project; edits to it do not reach the ledger."""
        with self._state.lock:
            if not self._state.is_valid_project_id(project_id):
                raise ProjectNotFound(project_id)
            return replace(self._state.projects[project_id])

    def get_projects(self) -> list[Project]:
        """Every project in ascending id order."""
        with self._state.lock:
            return [replace(self._state.projects[i]) for i in range(1, self._state.project_count + 1)]

    # ─── Internals ────────────────────────────────────────────────

    @staticmethod
    def _coerce(submission: Optional[SubmissionLike], fields: dict[str, Any]) -> ProjectSubmission:
        if isinstance(submission, ProjectSubmission):
            if not fields:
                return submission
            submission = submission.model_dump()
        data = dict(submission or {})
        data.update(fields)
        return ProjectSubmission.model_validate(data)

    def _ensure_open(self) -> None:
        if self._state.resolved:
            raise VotingAlreadyResolved("Cannot register projects after voting is resolved")

    def _insert(self, subs: list[ProjectSubmission]) -> tuple[list[int], list[EventEntry]]:
        """Journal and store ``subs``. Caller holds the state lock."""
        first_id = self._state.next_project_id()
        projects = [
            Project(id=first_id + offset, vote_count=0, **sub.model_dump())
            for offset, sub in enumerate(subs)
        ]
        entries = self._journal.append_batch(
            [
                (PROJECT_REGISTERED, {
                    "project_id": p.id,
                    "title": p.title,
                    "team_name": p.team_name,
                    "category": p.category,
                    "recipient": p.recipient,
                })
                for p in projects
            ],
            publish=False,
        )

        for project in projects:
            self._state.projects[project.id] = project
            metrics.inc("hackledger_projects_registered_total")
            logger.info("Project #%d registered: %s (%s)", project.id, project.title, project.team_name)

        return [p.id for p in projects], entries

    def _publish(self, entries: list[EventEntry]) -> None:
        for entry in entries:
            self._journal.publish(entry)
