import pytest

from hackledger import config
from hackledger.contest import Contest
from hackledger.metrics import metrics
from hackledger.treasury import InMemoryTreasury

ADMIN = "admin"


@pytest.fixture(autouse=True)
def reset_hackledger_state():
    """Reset metrics and config between every test."""
    config.reload()
    metrics.reset()

    yield

    metrics.reset()
    config.reload()


@pytest.fixture
def treasury():
    return InMemoryTreasury("sponsor", 300)


@pytest.fixture
def contest(treasury):
    c = Contest(admins=[ADMIN], treasury=treasury)
    yield c
    c.close()


def register(contest: Contest, n: int) -> list[int]:
    """Register ``n`` projects titled "Project <i>" paying "team-<i>"."""
    return [
        contest.register_project(
            ADMIN,
            title=f"Project {i}",
            team_name=f"Team {i}",
            category="web3",
            recipient=f"team-{i}",
        )
        for i in range(1, n + 1)
    ]


def cast(contest: Contest, counts: list[int]) -> None:
    """Give project ``i + 1`` exactly ``counts[i]`` votes, one fresh voter per vote."""
    for index, n in enumerate(counts):
        project_id = index + 1
        for k in range(n):
            contest.vote(f"voter-{project_id}-{k}", project_id)


@pytest.fixture
def seeded(contest):
    """Contest with projects 1-4 registered and no votes."""
    register(contest, 4)
    return contest
