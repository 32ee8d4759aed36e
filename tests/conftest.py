# Ensures `import league_dashboard` works when running `pytest` from the repo root
# without an editable install.
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from league_dashboard.access import RequestContext  # noqa: E402
from league_dashboard.audit import AuditLog  # noqa: E402
from league_dashboard.config import Settings  # noqa: E402
from league_dashboard.models import KNOWN_DIVISIONS, User  # noqa: E402
from league_dashboard.repository import LeagueRepository  # noqa: E402


def make_user(user_id, first, last, **fields):
    return User(id=user_id, first_name=first, last_name=last, email=f"{user_id}@example.com", **fields)


@pytest.fixture
def repository(tmp_path):
    repo = LeagueRepository(str(tmp_path / "league.db"))
    repo.initialize_schema()
    return repo


@pytest.fixture
def settings(tmp_path):
    return Settings(db_path=str(tmp_path / "league.db"), file_prefix="bsd")


@pytest.fixture
def league(repository):
    """Two seasons: fall 2024 with a finished draft and the current spring 2025."""

    users = [
        make_user("admin", "Ada", "Admin", role="admin"),
        make_user("comm", "Cora", "Commish"),
        make_user("cap", "Carl", "Captain", male=True, old_id=100),
        make_user("p1", "Paul", "One", male=True, old_id=101, height=74, skill_setter=True),
        make_user("p2", "Pam", "Two", male=False, old_id=102, height=66),
        make_user("p3", "Pete", "Three", male=True, old_id=103, preferred_name="PJ"),
        make_user("p4", "Pia", "Four", male=False, old_id=104),
        make_user("outsider", "Oscar", "Out"),
    ]
    for user in users:
        repository.add_user(user)

    previous = repository.create_season("F24", year=2024, name="fall")
    divisions = {
        name: repository.create_division(name, level=level)
        for level, name in enumerate(KNOWN_DIVISIONS, start=1)
    }
    old_team = repository.create_team(
        previous.id, captain_id="cap", division_id=divisions["AA"].id, name="Aces", number=1
    )
    repository.add_draft(old_team.id, "p1", round=1, overall=1)
    repository.add_draft(old_team.id, "p3", round=2, overall=12)

    season = repository.create_season(
        "S25",
        year=2025,
        name="spring",
        tryout_2_date="April 12",
        tryout_2_s1_time="6:00 PM",
        tryout_2_s2_time="7:00 PM",
        tryout_2_s3_time="8:00 PM",
    )
    signups = {
        "cap": repository.create_signup(season.id, "cap", captain="yes"),
        "p1": repository.create_signup(season.id, "p1"),
        "p2": repository.create_signup(season.id, "p2", age="25"),
        "p3": repository.create_signup(season.id, "p3", pair_pick="p4", pair_reason="carpool"),
        "p4": repository.create_signup(season.id, "p4", dates_missing="april 12, April 19"),
    }
    team = repository.create_team(
        season.id, captain_id="cap", division_id=divisions["AA"].id, name="Blockers", number=1
    )
    repository.replace_commissioners(season.id, [(divisions["AA"].id, "comm")])

    return SimpleNamespace(
        previous=previous,
        season=season,
        divisions=divisions,
        signups=signups,
        team=team,
        old_team=old_team,
    )


@pytest.fixture
def context_for(repository, settings, league):
    def build(viewer_id):
        return RequestContext(
            repository=repository,
            viewer_id=viewer_id,
            season=repository.get_latest_season(),
            settings=settings,
            audit=AuditLog(repository),
        )

    return build


@pytest.fixture
def admin_ctx(context_for):
    return context_for("admin")
