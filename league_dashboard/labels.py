"""Printable labels derived from player, season and draft records."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional

from .models import DraftRecord, PlayerName, TryoutSheetRow, User


EMPTY = "—"

_SEASON_ABBREVIATIONS = (("fall", "F"), ("spring", "S"), ("summer", "U"))


def display_name(person: "User | PlayerName") -> str:
    return f"{person.preferred_name or person.first_name} {person.last_name}"


def height_label(inches: Optional[int]) -> str:
    if not inches:
        return EMPTY
    feet, remainder = divmod(inches, 12)
    return f"{feet}'{remainder}\""


def gender_label(male: Optional[bool]) -> str:
    if male is True:
        return "M"
    if male is False:
        return "NM"
    return EMPTY


def positions_label(
    setter: Optional[bool], hitter: Optional[bool], passer: Optional[bool]
) -> str:
    labels = [code for code, flag in (("S", setter), ("H", hitter), ("P", passer)) if flag]
    return "/".join(labels) if labels else EMPTY


def id_label(old_id: Optional[int]) -> str:
    return EMPTY if old_id is None else str(old_id)


def season_abbreviation(season_name: str) -> str:
    normalized = season_name.strip().lower()
    for prefix, code in _SEASON_ABBREVIATIONS:
        if normalized.startswith(prefix):
            return code
    return season_name[:1].upper()


def season_short_label(season_name: str, year: int) -> str:
    """``("fall", 2024)`` becomes ``"F24"``."""

    return f"{season_abbreviation(season_name)}{str(year)[-2:]}"


def season_slug(season_name: str) -> str:
    slug = re.sub(r"\s+", "-", season_name.lower().strip())
    return re.sub(r"[^a-z0-9-]", "", slug)


def sheet_filename(prefix: str, week: int, season_name: str, year: int) -> str:
    return f"{prefix}-week{week}-{season_slug(season_name)}-{year}.pdf"


def latest_draft_by_user(records: Iterable[DraftRecord]) -> Dict[str, DraftRecord]:
    """Keep the first record per user.

    ``records`` must already be ordered newest season first, then by overall
    pick, which is how ``LeagueRepository.list_draft_history`` returns them.
    """

    latest: Dict[str, DraftRecord] = {}
    for record in records:
        latest.setdefault(record.user_id, record)
    return latest


def tryout_row(
    user: User,
    *,
    pair_pick_id: Optional[str],
    pair_names: Dict[str, str],
    latest_draft: Optional[DraftRecord],
    team_number: Optional[int] = None,
) -> TryoutSheetRow:
    pair_name = ""
    if pair_pick_id:
        pair_name = pair_names.get(pair_pick_id, EMPTY)
    return TryoutSheetRow(
        id_label=id_label(user.old_id),
        name=display_name(user),
        pair_name=pair_name,
        has_pair=bool(pair_pick_id),
        positions_label=positions_label(user.skill_setter, user.skill_hitter, user.skill_passer),
        height_label=height_label(user.height),
        gender_label=gender_label(user.male),
        last_season_label=(
            season_short_label(latest_draft.season_name, latest_draft.season_year)
            if latest_draft
            else ""
        ),
        last_division_label=latest_draft.division_name if latest_draft else "",
        has_blank_history=latest_draft is None,
        team_number=team_number,
    )


__all__ = [
    "EMPTY",
    "display_name",
    "gender_label",
    "height_label",
    "id_label",
    "latest_draft_by_user",
    "positions_label",
    "season_abbreviation",
    "season_short_label",
    "season_slug",
    "sheet_filename",
    "tryout_row",
]
