"""Page loaders and mutation handlers for the dashboard.

Every mutation runs in the same order: check the viewer's role, validate the
whole request without touching the database, apply it in one transaction,
record an audit entry, then report an ``ActionResult``. A rejected request
leaves the database untouched.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

from . import labels
from .access import (
    RequestContext,
    require_admin,
    require_administrative_access,
    require_commissioner,
    require_season,
    require_viewer,
)
from .errors import InvalidRequest, NotFound, guarded
from .models import (
    KNOWN_DIVISIONS,
    ActionResult,
    AuditAction,
    CommissionerSlots,
    EvaluationCandidate,
    EvaluationPage,
    PictureCandidate,
    RosterEditData,
    Season,
    Signup,
    SignupEntry,
    SignupGroup,
    SignupPage,
    User,
    WaitlistEntry,
    WaitlistPage,
)
from .repository import player_name


log = logging.getLogger(__name__)

NEW_PLAYERS_LABEL = "New Players"
MIN_HEIGHT_INCHES = 48
MAX_HEIGHT_INCHES = 96


@dataclass(frozen=True)
class SlotAssignment:
    slot_id: int
    user_id: str


@dataclass(frozen=True)
class DivisionEvaluation:
    player_id: str
    division: str


@dataclass(frozen=True)
class CommissionerAssignment:
    division_id: int
    commissioner_1: Optional[str] = None
    commissioner_2: Optional[str] = None


@dataclass(frozen=True)
class TeamEntry:
    captain_id: Optional[str]
    name: str


@dataclass(frozen=True)
class DraftPick:
    team_id: int
    user_id: Optional[str]
    round: int


def _expected_team_count(division_name: str) -> int:
    return 4 if division_name == "BB" else 6


def _misses_date(signup: Signup, date: str) -> bool:
    wanted = date.strip().lower()
    if not wanted:
        return False
    missing = [value.strip().lower() for value in (signup.dates_missing or "").split(",")]
    return wanted in [value for value in missing if value]


def _require_signed_up(ctx: RequestContext, season: Season, user_ids: Sequence[str], message: str) -> None:
    unique = set(user_ids)
    if ctx.repository.signed_up_user_ids(season.id, unique) != unique:
        raise InvalidRequest(message)


def _reject_duplicate_users(updates: Sequence[SlotAssignment], week: int) -> None:
    counts = Counter(update.user_id for update in updates)
    if any(count > 1 for count in counts.values()):
        raise InvalidRequest(f"A player cannot be assigned to multiple week {week} slots.")


# Week 1 rosters ----------------------------------------------------------
@guarded("Something went wrong while loading data.")
def load_week1_edit_data(ctx: RequestContext) -> RosterEditData:
    require_admin(ctx)
    season = require_season(ctx)
    players = [player_name(user) for user, _ in ctx.repository.list_signed_up_players(season.id)]
    return RosterEditData(
        season_label=season.label,
        players=players,
        week1_slots=ctx.repository.list_week1_slots(season.id),
    )


@guarded("Something went wrong while updating week 1 rosters.")
def update_week1_rosters(ctx: RequestContext, updates: Sequence[SlotAssignment]) -> ActionResult:
    require_admin(ctx)
    if not updates:
        raise InvalidRequest("No updates provided.")
    season = require_season(ctx)
    _reject_duplicate_users(updates, week=1)
    _require_signed_up(
        ctx,
        season,
        [update.user_id for update in updates],
        "All selected players must be signed up for the current season.",
    )

    ctx.repository.reassign_week1_slots(
        season.id, [(update.slot_id, update.user_id) for update in updates]
    )
    log.info("Reassigned %d week 1 slots in season %s", len(updates), season.id)
    ctx.record(AuditAction.UPDATE, "week1_rosters", f"Updated week 1 rosters for season {season.id}")
    return ActionResult(True, "Week 1 rosters updated successfully.")


# Week 2 rosters ----------------------------------------------------------
@guarded("Something went wrong while loading data.")
def load_week2_edit_data(ctx: RequestContext) -> RosterEditData:
    """Like week 1, minus players who said they will miss the week 2 date."""

    require_admin(ctx)
    season = require_season(ctx)
    tryout_date = season.tryout_2_date or ""
    players = [
        player_name(user)
        for user, signup in ctx.repository.list_signed_up_players(season.id)
        if not _misses_date(signup, tryout_date)
    ]
    return RosterEditData(
        season_label=season.label,
        players=players,
        week2_slots=ctx.repository.list_week2_slots(season.id),
    )


@guarded("Something went wrong while updating week 2 rosters.")
def update_week2_rosters(ctx: RequestContext, updates: Sequence[SlotAssignment]) -> ActionResult:
    require_admin(ctx)
    if not updates:
        raise InvalidRequest("No updates provided.")
    season = require_season(ctx)
    _reject_duplicate_users(updates, week=2)
    _require_signed_up(
        ctx,
        season,
        [update.user_id for update in updates],
        "All selected players must be signed up for the current season.",
    )

    slots = {slot.id: slot for slot in ctx.repository.list_week2_slots(season.id)}
    captain_divisions = ctx.repository.captain_division_by_user(season.id)
    for update in updates:
        slot = slots.get(update.slot_id)
        if slot is None:
            raise InvalidRequest("One or more roster slots are invalid.")
        if slot.is_captain and captain_divisions.get(update.user_id) != slot.division_id:
            raise InvalidRequest("Captain slots must contain captains assigned to that same division.")

    ctx.repository.reassign_week2_slots(
        season.id, [(update.slot_id, update.user_id) for update in updates]
    )
    log.info("Reassigned %d week 2 slots in season %s", len(updates), season.id)
    ctx.record(AuditAction.UPDATE, "week2_rosters", f"Updated week 2 rosters for season {season.id}")
    return ActionResult(True, "Week 2 rosters updated successfully.")


# Evaluations -------------------------------------------------------------
@guarded("Something went wrong.")
def load_evaluation_page(ctx: RequestContext) -> EvaluationPage:
    """Signed-up players who have never been drafted, with any saved rating."""

    require_admin(ctx)
    season = require_season(ctx)
    signed_up = [user for user, _ in ctx.repository.list_signed_up_players(season.id)]
    drafted = ctx.repository.drafted_user_ids(user.id for user in signed_up)
    newcomers = [user for user in signed_up if user.id not in drafted]
    saved = ctx.repository.evaluations_for(season.id, (user.id for user in newcomers))
    return EvaluationPage(
        season_label=season.label,
        players=[
            EvaluationCandidate(
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                preferred_name=user.preferred_name,
                male=user.male,
                division=saved.get(user.id),
            )
            for user in newcomers
        ],
    )


@guarded("Failed to save evaluations.")
def save_evaluations(ctx: RequestContext, entries: Sequence[DivisionEvaluation]) -> ActionResult:
    evaluator_id = require_admin(ctx)
    for entry in entries:
        if entry.division not in KNOWN_DIVISIONS:
            raise InvalidRequest(f"Invalid division: {entry.division}")
    season = require_season(ctx)

    division_ids = {division.name: division.id for division in ctx.repository.list_divisions()}
    missing = sorted({entry.division for entry in entries} - set(division_ids))
    if missing:
        raise InvalidRequest(f"Invalid division: {missing[0]}")

    ctx.repository.replace_evaluations(
        season.id,
        evaluator_id,
        [(entry.player_id, division_ids[entry.division]) for entry in entries],
    )
    ctx.record(
        AuditAction.UPDATE,
        "evaluations",
        f"Saved {len(entries)} evaluations for season {season.id}",
    )
    return ActionResult(True, "Evaluations saved successfully.")


# Commissioners -----------------------------------------------------------
@guarded("Failed to load commissioners.")
def load_commissioners(ctx: RequestContext, season_id: int) -> List[CommissionerSlots]:
    """Two commissioner slots for each of the known divisions."""

    require_admin(ctx)
    divisions = [
        division
        for division in ctx.repository.list_divisions()
        if division.name in KNOWN_DIVISIONS
    ]
    assigned: Dict[int, List[str]] = {}
    for division_id, user_id in ctx.repository.list_commissioners(season_id):
        assigned.setdefault(division_id, []).append(user_id)

    slots = []
    for division in divisions:
        users = assigned.get(division.id, [])
        slots.append(
            CommissionerSlots(
                division_id=division.id,
                division_name=division.name,
                commissioner_1=users[0] if users else None,
                commissioner_2=users[1] if len(users) > 1 else None,
            )
        )
    return slots


@guarded("Failed to save commissioners.")
def save_commissioners(
    ctx: RequestContext, season_id: int, assignments: Sequence[CommissionerAssignment]
) -> ActionResult:
    require_admin(ctx)
    if ctx.repository.get_season(season_id) is None:
        raise NotFound("Season not found.")
    known = {division.id for division in ctx.repository.list_divisions()}

    rows = []
    for assignment in assignments:
        if assignment.division_id not in known:
            raise InvalidRequest("Invalid division selected.")
        picked = [user_id for user_id in (assignment.commissioner_1, assignment.commissioner_2) if user_id]
        if len(picked) != len(set(picked)):
            raise InvalidRequest("A commissioner cannot fill both slots of one division.")
        rows.extend((assignment.division_id, user_id) for user_id in picked)

    ctx.repository.replace_commissioners(season_id, rows)
    ctx.record(AuditAction.UPDATE, "commissioners", f"Updated commissioners for season {season_id}")
    return ActionResult(True, "Commissioners updated successfully.")


# Teams and draft ---------------------------------------------------------
@guarded("Something went wrong while saving teams.")
def create_teams(ctx: RequestContext, division_id: int, teams: Sequence[TeamEntry]) -> ActionResult:
    require_commissioner(ctx)
    if not division_id:
        raise InvalidRequest("Please select a division.")
    if not teams:
        raise InvalidRequest("Please select at least one captain.")
    season = require_season(ctx)
    division = ctx.repository.get_division(division_id)
    if division is None:
        raise InvalidRequest("Invalid division selected.")

    expected = _expected_team_count(division.name)
    if len(teams) != expected:
        raise InvalidRequest(f"Division {division.name} requires {expected} teams.")
    for index, team in enumerate(teams, start=1):
        if not team.captain_id:
            raise InvalidRequest(f"Please select a captain for team {index}.")
        if not team.name.strip():
            raise InvalidRequest(f"Please enter a name for team {index}.")
    captain_ids = [team.captain_id for team in teams]
    if len(set(captain_ids)) != len(captain_ids):
        raise InvalidRequest("Each team must have a unique captain.")
    _require_signed_up(
        ctx,
        season,
        captain_ids,  # type: ignore[arg-type]
        "All selected captains must be signed up for the current season.",
    )

    updated = ctx.repository.save_division_teams(
        season.id, division.id, [(team.captain_id, team.name.strip()) for team in teams]  # type: ignore[misc]
    )
    verb = "updated" if updated else "created"
    ctx.record(
        AuditAction.UPDATE if updated else AuditAction.CREATE,
        "teams",
        f"{verb.capitalize()} {len(teams)} teams for division {division.name} in season {season.id}",
    )
    return ActionResult(True, f"Successfully {verb} {len(teams)} teams!")


def draft_overall(*, level: int, round: int, team_number: int, team_count: int) -> int:
    """Overall pick number of a snake draft: odd rounds ascend, even rounds descend."""

    position = team_number if round % 2 == 1 else team_count + 1 - team_number
    return (level - 1) * 50 + (round - 1) * team_count + position


@guarded("Something went wrong while submitting the draft.")
def submit_draft(ctx: RequestContext, division_id: int, picks: Sequence[DraftPick]) -> ActionResult:
    require_commissioner(ctx)
    if not picks:
        raise InvalidRequest("No draft picks to submit.")
    season = require_season(ctx)
    division = ctx.repository.get_division(division_id)
    if division is None:
        raise InvalidRequest("Invalid division selected.")
    teams = {team.id: team for team in ctx.repository.list_teams(season.id, division_id=division.id)}

    for pick in picks:
        team = teams.get(pick.team_id)
        if team is None:
            raise InvalidRequest("One or more teams are invalid.")
        if not pick.user_id:
            raise InvalidRequest(f"Please select a player for Round {pick.round}, Team {team.number}.")
    if len({pick.user_id for pick in picks}) != len(picks):
        raise InvalidRequest("A player cannot be drafted more than once.")
    if len({(pick.team_id, pick.round) for pick in picks}) != len(picks):
        raise InvalidRequest("Each team can only pick once per round.")

    team_count = len({pick.team_id for pick in picks})
    rows = [
        (
            pick.team_id,
            pick.user_id,
            pick.round,
            draft_overall(
                level=division.level,
                round=pick.round,
                team_number=teams[pick.team_id].number or 0,
                team_count=team_count,
            ),
        )
        for pick in picks
    ]
    ctx.repository.insert_drafts(rows)  # type: ignore[arg-type]
    ctx.record(
        AuditAction.CREATE,
        "drafts",
        f"Submitted {len(picks)} draft picks for division level {division.level}",
    )
    return ActionResult(True, f"Successfully submitted {len(picks)} draft picks!")


# Waitlist ----------------------------------------------------------------
@guarded("Something went wrong.")
def load_waitlist(ctx: RequestContext) -> WaitlistPage:
    require_admin(ctx)
    season = require_season(ctx)
    entries = ctx.repository.list_waitlist(season.id)
    latest = labels.latest_draft_by_user(
        ctx.repository.list_draft_history(entry.user_id for entry in entries)
    )
    enriched: List[WaitlistEntry] = []
    for entry in entries:
        draft = latest.get(entry.user_id)
        enriched.append(
            WaitlistEntry(**{**asdict(entry), "last_division": draft.division_name if draft else None})
        )
    return WaitlistPage(season_label=season.label, entries=enriched)


@guarded("Something went wrong.")
def set_waitlist_approval(ctx: RequestContext, waitlist_id: int, approved: bool) -> ActionResult:
    require_admin(ctx)
    season = require_season(ctx)
    user_id = ctx.repository.get_waitlist_user(season.id, waitlist_id)
    if user_id is None:
        raise NotFound("Waitlist entry not found.")

    ctx.repository.set_waitlist_approved(waitlist_id, approved=approved)
    ctx.record(
        AuditAction.UPDATE,
        "waitlist",
        f"{'Approved' if approved else 'Unapproved'} waitlist entry for user {user_id}",
        entity_id=waitlist_id,
    )
    if approved:
        return ActionResult(True, "Player approved from waitlist.")
    return ActionResult(True, "Player unapproved on waitlist.")


@guarded("Something went wrong. Please try again.")
def express_waitlist_interest(ctx: RequestContext) -> ActionResult:
    viewer_id = require_viewer(ctx)
    season = require_season(ctx)
    if ctx.repository.add_waitlist_entry(season.id, viewer_id) is None:
        raise InvalidRequest("You've already expressed interest for this season.")
    return ActionResult(True, "Your interest has been recorded. We'll reach out if a spot opens up!")


# Signups -----------------------------------------------------------------
def _signup_entries(ctx: RequestContext, season: Season) -> List[SignupEntry]:
    repository = ctx.repository
    signed_up = repository.list_signed_up_players(season.id)
    latest = labels.latest_draft_by_user(repository.list_draft_history(user.id for user, _ in signed_up))
    related = repository.get_users(
        [signup.pair_pick for _, signup in signed_up if signup.pair_pick]
        + [draft.captain_id for draft in latest.values()]
    )

    entries = []
    for user, signup in signed_up:
        draft = latest.get(user.id)
        pair = related.get(signup.pair_pick) if signup.pair_pick else None
        captain = related.get(draft.captain_id) if draft else None
        entries.append(
            SignupEntry(
                signup_id=signup.id,
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
                signup_date=signup.created_at,
                is_new=draft is None,
                old_id=user.old_id,
                preferred_name=user.preferred_name,
                phone=user.phone,
                male=user.male,
                age=signup.age,
                captain=signup.captain,
                amount_paid=signup.amount_paid,
                pair_pick_name=labels.display_name(pair) if pair else None,
                pair_reason=signup.pair_reason,
                height=user.height,
                dates_missing=signup.dates_missing,
                play_first_week=signup.play_first_week,
                last_draft_season=(
                    labels.season_short_label(draft.season_name, draft.season_year) if draft else None
                ),
                last_draft_division=draft.division_name if draft else None,
                last_draft_captain=labels.display_name(captain) if captain else None,
                last_draft_overall=draft.overall if draft else None,
            )
        )
    return entries


@guarded("Something went wrong.")
def load_admin_signups(ctx: RequestContext) -> SignupPage:
    require_admin(ctx)
    season = require_season(ctx)
    return SignupPage(season_label=season.label, entries=_signup_entries(ctx, season))


@guarded("Something went wrong.")
def delete_signup(ctx: RequestContext, signup_id: int) -> ActionResult:
    require_admin(ctx)
    if signup_id <= 0:
        raise InvalidRequest("Invalid signup id.")
    season = require_season(ctx)
    signup = ctx.repository.get_signup(season.id, signup_id)
    if signup is None:
        raise NotFound("Signup entry not found for the current season.")

    ctx.repository.delete_signup(season.id, signup_id)
    record = json.dumps(asdict(signup), default=str)
    ctx.record(
        AuditAction.DELETE,
        "signups",
        f"Deleted signup entry. Full deleted signup record: {record}",
        entity_id=signup_id,
    )
    return ActionResult(True, "Signup entry deleted.")


def _gender_rank(entry: SignupEntry) -> int:
    if entry.male is True:
        return 0
    if entry.male is False:
        return 1
    return 2


@guarded("Something went wrong.")
def load_signup_groups(ctx: RequestContext) -> List[SignupGroup]:
    """Signups grouped by last drafted division, new players first."""

    require_administrative_access(ctx)
    season = require_season(ctx)
    entries = _signup_entries(ctx, season)
    levels = {division.name: division.level for division in ctx.repository.list_divisions()}

    grouped: Dict[str, List[SignupEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.last_draft_division or NEW_PLAYERS_LABEL, []).append(entry)

    def group_order(label: str):
        if label == NEW_PLAYERS_LABEL:
            return (0, 0)
        return (1, levels.get(label, 999))

    return [
        SignupGroup(
            label=label,
            players=sorted(grouped[label], key=lambda e: (_gender_rank(e), e.last_name.lower())),
        )
        for label in sorted(grouped, key=group_order)
    ]


# Player records ----------------------------------------------------------
@dataclass(frozen=True)
class PlayerChanges:
    """Fields an admin may edit; ``None`` leaves the stored value alone."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    preferred_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    experience: Optional[str] = None
    assessment: Optional[str] = None
    height: Optional[int] = None
    skill_setter: Optional[bool] = None
    skill_hitter: Optional[bool] = None
    skill_passer: Optional[bool] = None
    skill_other: Optional[bool] = None
    male: Optional[bool] = None
    captain_eligible: Optional[bool] = None


@guarded("Something went wrong while updating the player.")
def edit_player(ctx: RequestContext, user_id: str, changes: PlayerChanges) -> ActionResult:
    require_admin(ctx)
    user = ctx.repository.get_user(user_id)
    if user is None:
        raise NotFound("Player not found.")

    values = {key: value for key, value in asdict(changes).items() if value is not None}
    for key in ("first_name", "last_name", "email"):
        if key in values:
            values[key] = values[key].strip()
            if not values[key]:
                raise InvalidRequest("First name, last name and email are required.")
    if "height" in values and not MIN_HEIGHT_INCHES <= values["height"] <= MAX_HEIGHT_INCHES:
        raise InvalidRequest(
            f"Height must be between {MIN_HEIGHT_INCHES} and {MAX_HEIGHT_INCHES} inches."
        )
    if "email" in values and ctx.repository.email_in_use(values["email"], exclude_user_id=user_id):
        raise InvalidRequest("That email is already used by another player.")

    ctx.repository.update_user(user_id, values)
    ctx.record(
        AuditAction.UPDATE,
        "users",
        f"Updated player {user.first_name} {user.last_name}: {', '.join(sorted(values)) or 'no changes'}",
        entity_id=user_id,
    )
    return ActionResult(True, "Player updated successfully.")


# Pictures ----------------------------------------------------------------
def expected_picture_filename(user: User) -> Optional[str]:
    """``{old_id}_{first initial}{last initial}.jpg``, or ``None`` if underivable."""

    if not user.old_id or user.old_id <= 0:
        return None
    first = user.first_name.strip()[:1].upper()
    last = user.last_name.strip()[:1].upper()
    if not first or not last:
        return None
    return f"{user.old_id}_{first}{last}.jpg"


@guarded("Failed to load players.")
def load_players_needing_pictures(ctx: RequestContext) -> List[PictureCandidate]:
    require_commissioner(ctx)
    season = require_season(ctx)
    return [
        PictureCandidate(
            user_id=user.id,
            signup_id=signup.id,
            display_name=labels.display_name(user),
            expected_filename=expected_picture_filename(user),
            old_id=user.old_id,
        )
        for user, signup in ctx.repository.list_signed_up_players(season.id)
        if not (user.picture or "").strip()
    ]


@guarded("Failed to finalize picture upload.")
def finalize_picture_upload(ctx: RequestContext, user_id: str, filename: str) -> ActionResult:
    require_commissioner(ctx)
    season = require_season(ctx)
    if not ctx.repository.signed_up_user_ids(season.id, [user_id]):
        raise InvalidRequest("Player is not signed up for the current season.")
    user = ctx.repository.get_user(user_id)
    if user is None:
        raise NotFound("Player not found.")

    expected = expected_picture_filename(user)
    if expected is None:
        raise InvalidRequest(
            "Player must have old_id and valid name initials before finalizing picture upload."
        )
    if filename != expected:
        raise InvalidRequest("Uploaded filename does not match the expected format.")
    if (user.picture or "").strip():
        if user.picture == filename:
            return ActionResult(True, "Picture already uploaded.")
        raise InvalidRequest("Player already has a picture.")

    ctx.repository.update_user(user_id, {"picture": filename})
    ctx.record(
        AuditAction.UPDATE,
        "users",
        f"Uploaded player picture for {user.first_name} {user.last_name} ({user_id}) as {filename}",
        entity_id=user_id,
    )
    return ActionResult(True, "Player picture uploaded.")


__all__ = [
    "CommissionerAssignment",
    "DivisionEvaluation",
    "DraftPick",
    "PlayerChanges",
    "SlotAssignment",
    "TeamEntry",
    "create_teams",
    "delete_signup",
    "draft_overall",
    "edit_player",
    "expected_picture_filename",
    "express_waitlist_interest",
    "finalize_picture_upload",
    "load_admin_signups",
    "load_commissioners",
    "load_evaluation_page",
    "load_players_needing_pictures",
    "load_signup_groups",
    "load_waitlist",
    "load_week1_edit_data",
    "load_week2_edit_data",
    "save_commissioners",
    "save_evaluations",
    "set_waitlist_approval",
    "submit_draft",
    "update_week1_rosters",
    "update_week2_rosters",
]
