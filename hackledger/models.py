"""
HACKLEDGER v1.0 — Models.
Pydantic models for project submissions and read snapshots.
"""

from pydantic import BaseModel, ConfigDict, Field


class ProjectSubmission(BaseModel):
    """Fields supplied by an administrator when registering a project.

    Contents are stored as given; only the field types are checked.
    """

    title: str = ""
    description: str = ""
    team_name: str = ""
    category: str = ""
    image_url: str = ""
    demo_url: str = ""
    repo_url: str = ""
    recipient: str = Field("", description="Identity that receives this project's prize share")


class ProjectView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    team_name: str
    category: str
    image_url: str
    demo_url: str
    repo_url: str
    recipient: str
    vote_count: int


class VotingData(BaseModel):
    """One consistent snapshot of the contest as seen by a viewer."""

    model_config = ConfigDict(frozen=True)

    projects: tuple[ProjectView, ...]
    total_votes: int
    total_voters: int
    my_votes: tuple[int, ...]
    resolved: bool
    winner_id: int = Field(0, description="0 until voting is resolved")


class PayoutView(BaseModel):
    model_config = ConfigDict(frozen=True)

    rank: int
    project_id: int
    recipient: str
    amount: int
    status: str
    error: str | None = None
    attempts: int = 0


class ResolutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    winner_id: int
    winner_title: str
    winner_votes: int
    podium: tuple[int, ...]
    payouts: tuple[PayoutView, ...] = ()
