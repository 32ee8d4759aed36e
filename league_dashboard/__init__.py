"""league_dashboard package exposing domain models, repository and settings."""

from .config import Settings
from .models import (
    ActionResult,
    Division,
    DraftRecord,
    Season,
    Signup,
    Team,
    TryoutSheetRow,
    User,
)
from .repository import LeagueRepository

__all__ = [
    "ActionResult",
    "Division",
    "DraftRecord",
    "LeagueRepository",
    "Season",
    "Settings",
    "Signup",
    "Team",
    "TryoutSheetRow",
    "User",
]
