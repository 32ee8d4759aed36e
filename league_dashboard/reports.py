"""Attrition report and the Google membership list."""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from . import labels
from .access import RequestContext, require_admin
from .errors import InvalidRequest, NotFound, guarded
from .models import ActionResult, AuditAction, DraftRecord, User


log = logging.getLogger(__name__)

TOP_CAPTAINS = 20
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
MIN_QUERY_LENGTH = 2
MEMBERSHIP_OPTIONS = ("Y", "N", "P", "B", "E")


@dataclass(frozen=True)
class GenderCount:
    label: str
    count: int


@dataclass(frozen=True)
class GenderRatio:
    male: int
    non_male: int
    ratio: str


@dataclass(frozen=True)
class CaptainAttrition:
    captain: str
    count: int
    male: int
    non_male: int


@dataclass(frozen=True)
class CaptainAttritionAverage:
    captain: str
    avg: float
    total: int
    seasons: int
    male: int
    non_male: int


@dataclass(frozen=True)
class AttritionReport:
    gender: List[GenderCount] = field(default_factory=list)
    attrition_ratio: Optional[GenderRatio] = None
    overall_ratio: Optional[GenderRatio] = None
    captains: List[CaptainAttrition] = field(default_factory=list)
    captain_averages: List[CaptainAttritionAverage] = field(default_factory=list)
    lapsed_captains: List[CaptainAttrition] = field(default_factory=list)
    lapsed_captain_averages: List[CaptainAttritionAverage] = field(default_factory=list)


@dataclass(frozen=True)
class MembershipUser:
    id: str
    first_name: str
    last_name: str
    email: str
    seasons_list: str
    notification_list: str
    old_id: Optional[int] = None
    preferred_name: Optional[str] = None


@dataclass(frozen=True)
class MembershipPage:
    users: List[MembershipUser]
    total: int
    page: int
    limit: int
    total_pages: int
    query: str


# Attrition ---------------------------------------------------------------
def _gender_key(male: Optional[bool]) -> str:
    if male is True:
        return "Male"
    if male is False:
        return "Not Male"
    return "Unknown"


def gender_ratio(male: int, non_male: int) -> Optional[GenderRatio]:
    if non_male > 0:
        return GenderRatio(male=male, non_male=non_male, ratio=f"{male / non_male:.2f}")
    if male > 0:
        return GenderRatio(male=male, non_male=0, ratio="N/A")
    return None


def _tally_captains(
    records: Iterable[DraftRecord], users: Dict[str, User]
) -> Dict[str, Tuple[int, int, int]]:
    """captain id -> (players, male players, non-male players), in first-seen order."""

    tally: Dict[str, Tuple[int, int, int]] = {}
    for record in records:
        count, male, non_male = tally.get(record.captain_id, (0, 0, 0))
        player = users.get(record.user_id)
        flag = player.male if player else None
        tally[record.captain_id] = (
            count + 1,
            male + (flag is True),
            non_male + (flag is False),
        )
    return tally


def _captain_tables(
    tally: Dict[str, Tuple[int, int, int]],
    names: Dict[str, str],
    season_counts: Dict[str, int],
) -> Tuple[List[CaptainAttrition], List[CaptainAttritionAverage]]:
    top = sorted(tally, key=lambda captain_id: -tally[captain_id][0])[:TOP_CAPTAINS]
    counts = [
        CaptainAttrition(
            captain=names.get(captain_id, "Unknown"),
            count=tally[captain_id][0],
            male=tally[captain_id][1],
            non_male=tally[captain_id][2],
        )
        for captain_id in top
    ]
    averages = []
    for captain_id in top:
        total, male, non_male = tally[captain_id]
        seasons = season_counts.get(captain_id) or 1
        averages.append(
            CaptainAttritionAverage(
                captain=names.get(captain_id, "Unknown"),
                avg=round(total / seasons, 2),
                total=total,
                seasons=seasons,
                male=male,
                non_male=non_male,
            )
        )
    averages.sort(key=lambda entry: -entry.avg)
    return counts, averages[:TOP_CAPTAINS]


def build_attrition_report(
    records: List[DraftRecord],
    users: Dict[str, User],
    season_counts: Dict[str, int],
) -> AttritionReport:
    """Compute the report from every draft record.

    ``users`` must hold every drafted player and captain; ``season_counts``
    maps captain id to the number of seasons they captained.
    """

    seasons_by_user: Dict[str, set] = {}
    for record in records:
        seasons_by_user.setdefault(record.user_id, set()).add(record.season_id)
    one_season = {user_id for user_id, seasons in seasons_by_user.items() if len(seasons) == 1}
    if not one_season:
        return AttritionReport()

    gender_counts = Counter(
        _gender_key(users[user_id].male if user_id in users else None) for user_id in one_season
    )
    gender = [
        GenderCount(label, gender_counts[label])
        for label in ("Male", "Not Male", "Unknown")
        if gender_counts[label]
    ]

    overall = Counter(
        users[record.user_id].male if record.user_id in users else None for record in records
    )
    names = {user_id: labels.display_name(user) for user_id, user in users.items()}

    captains, captain_averages = _captain_tables(
        _tally_captains((r for r in records if r.user_id in one_season), users), names, season_counts
    )

    latest_season = max(record.season_id for record in records)
    current = {record.user_id for record in records if record.season_id == latest_season}
    last_season: Dict[str, int] = {}
    for record in records:
        if record.user_id not in current:
            last_season[record.user_id] = max(last_season.get(record.user_id, 0), record.season_id)
    lapsed = [r for r in records if r.user_id in last_season and r.season_id == last_season[r.user_id]]
    lapsed_captains, lapsed_averages = _captain_tables(_tally_captains(lapsed, users), names, season_counts)

    return AttritionReport(
        gender=gender,
        attrition_ratio=gender_ratio(gender_counts["Male"], gender_counts["Not Male"]),
        overall_ratio=gender_ratio(overall[True], overall[False]),
        captains=captains,
        captain_averages=captain_averages,
        lapsed_captains=lapsed_captains,
        lapsed_captain_averages=lapsed_averages,
    )


@guarded("Something went wrong.")
def load_attrition_report(ctx: RequestContext) -> AttritionReport:
    require_admin(ctx)
    records = ctx.repository.list_draft_history()
    captain_ids = {record.captain_id for record in records}
    users = ctx.repository.get_users({record.user_id for record in records} | captain_ids)
    report = build_attrition_report(records, users, ctx.repository.captain_season_counts(captain_ids))
    log.info("Built attrition report from %d draft records", len(records))
    return report


# Membership --------------------------------------------------------------
def _positive_int(value: Optional[int], default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return default


@guarded("Failed to load users.")
def load_membership_page(
    ctx: RequestContext,
    *,
    query: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> MembershipPage:
    require_admin(ctx)
    query = (query or "").strip()
    page = _positive_int(page, 1)
    limit = min(_positive_int(limit, DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    search = query if len(query) >= MIN_QUERY_LENGTH else ""

    total, _ = ctx.repository.search_users(search, limit=1, offset=0)
    total_pages = max(1, math.ceil(total / limit))
    page = min(page, total_pages)
    _, users = ctx.repository.search_users(search, limit=limit, offset=(page - 1) * limit)
    return MembershipPage(
        users=[
            MembershipUser(
                id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
                seasons_list=user.seasons_list or "",
                notification_list=user.notification_list or "",
                old_id=user.old_id,
                preferred_name=user.preferred_name,
            )
            for user in users
        ],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        query=query,
    )


@guarded("Failed to update membership fields.")
def update_membership(
    ctx: RequestContext, user_id: str, *, seasons_list: str, notification_list: str
) -> ActionResult:
    require_admin(ctx)
    for value in (seasons_list, notification_list):
        if value not in MEMBERSHIP_OPTIONS:
            raise InvalidRequest(f"Membership flags must be one of {', '.join(MEMBERSHIP_OPTIONS)}.")
    if not ctx.repository.update_user(
        user_id, {"seasons_list": seasons_list, "notification_list": notification_list}
    ):
        raise NotFound("Player not found.")
    ctx.record(
        AuditAction.UPDATE,
        "users",
        f"Admin updated Google membership flags for {user_id} "
        f"(seasons_list={seasons_list}, notification_list={notification_list})",
        entity_id=user_id,
    )
    return ActionResult(True, "Membership fields updated.")


__all__ = [
    "AttritionReport",
    "CaptainAttrition",
    "CaptainAttritionAverage",
    "GenderCount",
    "GenderRatio",
    "MEMBERSHIP_OPTIONS",
    "MembershipPage",
    "MembershipUser",
    "build_attrition_report",
    "gender_ratio",
    "load_attrition_report",
    "load_membership_page",
    "update_membership",
]
