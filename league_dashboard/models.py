"""Domain models for the league_dashboard project.

These dataclasses mirror the rows the dashboard reads from and writes to the
league database, plus the derived views it builds for pages and tryout sheets.
They stay storage-agnostic so handlers can return them straight to the API
layer for JSON serialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Role(Enum):
    """Site-wide roles stored on the user record."""

    ADMIN = "admin"
    DIRECTOR = "director"


class AuditAction(Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Division names in level order; week-2 sheets and evaluations only know these.
KNOWN_DIVISIONS = ("AA", "A", "ABA", "ABB", "BBB", "BB")


@dataclass(frozen=True)
class User:
    """A league member. Admin pages edit a subset of these fields."""

    id: str
    first_name: str
    last_name: str
    email: str
    preferred_name: Optional[str] = None
    old_id: Optional[int] = None
    phone: Optional[str] = None
    experience: Optional[str] = None
    assessment: Optional[str] = None
    height: Optional[int] = None
    skill_setter: Optional[bool] = None
    skill_hitter: Optional[bool] = None
    skill_passer: Optional[bool] = None
    skill_other: Optional[bool] = None
    male: Optional[bool] = None
    role: Optional[str] = None
    captain_eligible: bool = True
    picture: Optional[str] = None
    seasons_list: Optional[str] = None
    notification_list: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class PlayerName:
    """The name fields pickers and comboboxes need."""

    id: str
    first_name: str
    last_name: str
    preferred_name: Optional[str] = None


@dataclass(frozen=True)
class Season:
    """A league season with its tryout schedule strings."""

    id: int
    code: str
    year: int
    name: str
    phase: str = "off_season"
    registration_open: bool = False
    late_date: Optional[str] = None
    tryout_1_date: Optional[str] = None
    tryout_1_s1_time: Optional[str] = None
    tryout_1_s2_time: Optional[str] = None
    tryout_2_date: Optional[str] = None
    tryout_2_s1_time: Optional[str] = None
    tryout_2_s2_time: Optional[str] = None
    tryout_2_s3_time: Optional[str] = None
    season_amount: Optional[str] = None
    late_amount: Optional[str] = None
    max_players: Optional[str] = None

    @property
    def label(self) -> str:
        """Page heading label, e.g. ``"Fall 2025"``."""

        name = self.name[:1].upper() + self.name[1:]
        return f"{name} {self.year}"

    def tryout_2_time(self, session_number: int) -> str:
        times = {
            1: self.tryout_2_s1_time,
            2: self.tryout_2_s2_time,
            3: self.tryout_2_s3_time,
        }
        return (times.get(session_number) or "").strip()


@dataclass(frozen=True)
class Division:
    id: int
    name: str
    level: int
    active: bool = True


@dataclass(frozen=True)
class Signup:
    """A player's registration for one season."""

    id: int
    season_id: int
    player_id: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    age: Optional[str] = None
    captain: Optional[str] = None
    pair: Optional[bool] = None
    pair_pick: Optional[str] = None
    pair_reason: Optional[str] = None
    dates_missing: Optional[str] = None
    play_first_week: Optional[bool] = None
    amount_paid: Optional[str] = None


@dataclass(frozen=True)
class Team:
    id: int
    season_id: int
    captain_id: str
    division_id: int
    name: str
    number: Optional[int] = None


@dataclass(frozen=True)
class DraftRecord:
    """One draft pick joined with the team, season and division it landed in."""

    user_id: str
    team_id: int
    season_id: int
    season_name: str
    season_year: int
    division_name: str
    captain_id: str
    round: int
    overall: int
    division_level: int = 0


@dataclass(frozen=True)
class Week1Slot:
    id: int
    session_number: int
    court_number: int
    user_id: str


@dataclass(frozen=True)
class Week2Slot:
    id: int
    division_id: int
    division_name: str
    team_number: int
    user_id: str
    is_captain: bool = False


@dataclass(frozen=True)
class WaitlistEntry:
    waitlist_id: int
    user_id: str
    first_name: str
    last_name: str
    email: str
    approved: bool
    created_at: datetime
    preferred_name: Optional[str] = None
    male: Optional[bool] = None
    last_division: Optional[str] = None


@dataclass(frozen=True)
class AuditEntry:
    id: int
    user_id: str
    action: str
    summary: str
    created_at: datetime
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class TryoutSheetRow:
    """One printed line of a tryout sheet; every field is already a label."""

    id_label: str
    name: str
    pair_name: str
    has_pair: bool
    positions_label: str
    height_label: str
    gender_label: str
    last_season_label: str
    last_division_label: str
    has_blank_history: bool
    team_number: Optional[int] = None


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a successful mutation handler."""

    status: bool
    message: str


@dataclass(frozen=True)
class SignupEntry:
    """Admin signup list line with the player's most recent draft."""

    signup_id: int
    user_id: str
    first_name: str
    last_name: str
    email: str
    signup_date: datetime
    is_new: bool
    old_id: Optional[int] = None
    preferred_name: Optional[str] = None
    phone: Optional[str] = None
    male: Optional[bool] = None
    age: Optional[str] = None
    captain: Optional[str] = None
    amount_paid: Optional[str] = None
    pair_pick_name: Optional[str] = None
    pair_reason: Optional[str] = None
    height: Optional[int] = None
    dates_missing: Optional[str] = None
    play_first_week: Optional[bool] = None
    last_draft_season: Optional[str] = None
    last_draft_division: Optional[str] = None
    last_draft_captain: Optional[str] = None
    last_draft_overall: Optional[int] = None


@dataclass(frozen=True)
class SignupGroup:
    """Captain-facing signup group, keyed by last division played."""

    label: str
    players: List[SignupEntry] = field(default_factory=list)


@dataclass(frozen=True)
class SignupPage:
    season_label: str
    entries: List[SignupEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RosterEditData:
    """Slots of one tryout week plus the players that may fill them."""

    season_label: str
    players: List[PlayerName] = field(default_factory=list)
    week1_slots: List[Week1Slot] = field(default_factory=list)
    week2_slots: List[Week2Slot] = field(default_factory=list)


@dataclass(frozen=True)
class EvaluationCandidate:
    user_id: str
    first_name: str
    last_name: str
    preferred_name: Optional[str] = None
    male: Optional[bool] = None
    division: Optional[str] = None


@dataclass(frozen=True)
class EvaluationPage:
    season_label: str
    players: List[EvaluationCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class CommissionerSlots:
    division_id: int
    division_name: str
    commissioner_1: Optional[str] = None
    commissioner_2: Optional[str] = None


@dataclass(frozen=True)
class WaitlistPage:
    season_label: str
    entries: List[WaitlistEntry] = field(default_factory=list)


@dataclass(frozen=True)
class PictureCandidate:
    user_id: str
    signup_id: int
    display_name: str
    expected_filename: Optional[str] = None
    old_id: Optional[int] = None


__all__ = [
    "ActionResult",
    "AuditAction",
    "AuditEntry",
    "CommissionerSlots",
    "Division",
    "DraftRecord",
    "EvaluationCandidate",
    "EvaluationPage",
    "KNOWN_DIVISIONS",
    "PictureCandidate",
    "PlayerName",
    "Role",
    "RosterEditData",
    "Season",
    "Signup",
    "SignupEntry",
    "SignupGroup",
    "SignupPage",
    "Team",
    "TryoutSheetRow",
    "User",
    "WaitlistEntry",
    "WaitlistPage",
    "Week1Slot",
    "Week2Slot",
]
