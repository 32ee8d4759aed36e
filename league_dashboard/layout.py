"""Layout rules for tryout sheets.

Everything here is pure: column widths, text fitting, grouping of rows onto
pages and row heights. Drawing lives in :mod:`league_dashboard.tryout_sheets`.
Widths are measured with reportlab's metrics for the built-in Helvetica fonts,
so what is computed here is exactly what the canvas will draw.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from reportlab.pdfbase.pdfmetrics import stringWidth

from .models import KNOWN_DIVISIONS, TryoutSheetRow


log = logging.getLogger(__name__)

REGULAR_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
ELLIPSIS = "…"

PAGE_WIDTH = 792
PAGE_HEIGHT = 612

COLUMN_PADDING = 8
ELASTIC_PADDING = 10
ELASTIC_MIN_WIDTH = 80
NOTES_MIN_WIDTH = 100

HIGHLIGHT_YELLOW = (1, 0.98, 0.8)
HIGHLIGHT_GREEN = (0.88, 0.97, 0.88)

WEEK1_COURTS = (1, 2, 3, 4)
WEEK1_MIN_ROW_HEIGHT = 24
WEEK1_MAX_ROW_HEIGHT = 44
WEEK1_NOTES_HEADER = "Notes - Score 1(BB) - 6(AA)"

WEEK2_MIN_ROW_HEIGHT = 9
WEEK2_NAME_MIN_WIDTH = 84
WEEK2_NOTES_WIDTH = 60
WEEK2_MIN_FONT_SIZE = 6
PAGE_DIVISIONS = (("AA", "A", "ABA"), ("ABB", "BBB", "BB"))
COURT_BY_DIVISION = {"AA": 1, "A": 2, "ABA": 3, "ABB": 4, "BBB": 8, "BB": 7}
SESSION_MATCHUPS = {1: (1, 2), 2: (3, 4), 3: (5, 6)}


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    width: float


@dataclass(frozen=True, order=True)
class SessionCourt:
    session: int
    court: int


@dataclass(frozen=True, order=True)
class DivisionTeam:
    division: str
    team: int


@dataclass(frozen=True)
class MatchupGroup:
    """One division's head-to-head block: home and away team side by side."""

    division: str
    court: int
    session: int
    home_team: int
    away_team: int
    home_rows: Tuple[TryoutSheetRow, ...]
    away_rows: Tuple[TryoutSheetRow, ...]


@dataclass(frozen=True)
class Week2Page:
    session: int
    page_index: int
    groups: Tuple[MatchupGroup, ...]


# Measurement -------------------------------------------------------------
def text_width(text: str, font: str, size: float) -> float:
    return stringWidth(text, font, size)


def column_width(
    header: str,
    values: Iterable[str],
    *,
    min_width: float,
    size: float,
    max_width: Optional[float] = None,
) -> float:
    """Widest of the bold header and the regular values, plus padding."""

    header_width = text_width(header, BOLD_FONT, size)
    value_width = max((text_width(value, REGULAR_FONT, size) for value in values), default=0)
    width = max(min_width, math.ceil(max(header_width, value_width)) + COLUMN_PADDING)
    if max_width is not None:
        width = min(max_width, width)
    return width


def natural_width(header: str, values: Iterable[str], size: float) -> int:
    widths = [text_width(value, REGULAR_FONT, size) for value in values]
    widths.append(text_width(header, REGULAR_FONT, size))
    return math.ceil(max(widths)) + ELASTIC_PADDING


def elastic_widths(
    name_values: Sequence[str],
    pair_values: Sequence[str],
    *,
    remaining: float,
    size: float,
) -> Tuple[int, int]:
    """Name and Pair widths sharing ``remaining`` points.

    When both natural widths fit they are used as is; otherwise both shrink by
    the same factor, each floored at ``ELASTIC_MIN_WIDTH`` (or half of
    ``remaining`` when that is smaller). The sum never exceeds ``remaining``.
    """

    name = natural_width("Name", name_values, size)
    pair = natural_width("Pair", pair_values, size)
    needed = name + pair
    scale = remaining / needed if needed > remaining else 1
    budget = max(0, math.floor(remaining))
    floor = min(ELASTIC_MIN_WIDTH, budget // 2)
    name_width = max(floor, math.floor(name * scale))
    pair_width = max(floor, math.floor(pair * scale))
    overflow = name_width + pair_width - budget
    if overflow > 0:
        # At most one side sits on the floor; the other gives up the excess.
        if name_width >= pair_width:
            name_width -= overflow
        else:
            pair_width -= overflow
    return name_width, pair_width


# Text fitting ------------------------------------------------------------
def truncate_to_fit(text: str, max_width: float, font: str, size: float) -> str:
    if not text:
        return ""
    if text_width(text, font, size) <= max_width:
        return text
    shortened = text
    while shortened:
        shortened = shortened[:-1]
        candidate = f"{shortened}{ELLIPSIS}"
        if text_width(candidate, font, size) <= max_width:
            return candidate
    return ELLIPSIS


def fit_text_to_cell(
    text: str,
    max_width: float,
    font: str,
    base_size: float,
    min_size: float,
) -> Tuple[str, float]:
    """Shrink in half-point steps down to ``min_size``, then truncate."""

    if not text:
        return "", base_size
    size = base_size
    while size > min_size and text_width(text, font, size) > max_width:
        size -= 0.5
    if text_width(text, font, size) <= max_width:
        return text, size
    return truncate_to_fit(text, max_width, font, size), size


# Columns -----------------------------------------------------------------
def week1_columns(rows: Sequence[TryoutSheetRow], *, table_width: float, size: float) -> List[Column]:
    fixed = [
        Column("up", "", 18),
        Column("down", "", 18),
        Column("id", "ID", column_width("ID", (r.id_label for r in rows), min_width=40, size=size)),
        Column(
            "last_division",
            "LD",
            column_width("LD", (r.last_division_label for r in rows), min_width=28, size=size),
        ),
        Column(
            "last_season",
            "LS",
            column_width("LS", (r.last_season_label for r in rows), min_width=26, size=size),
        ),
        Column("positions", "Pos", column_width("Pos", (r.positions_label for r in rows), min_width=28, size=size)),
        Column("height", "H", column_width("H", (r.height_label for r in rows), min_width=36, size=size)),
        Column("gender", "M?", column_width("M?", (r.gender_label for r in rows), min_width=34, size=size)),
    ]
    occupied = sum(column.width for column in fixed)
    name_width, pair_width = elastic_widths(
        [row.name for row in rows],
        [row.pair_name or "—" for row in rows],
        remaining=table_width - occupied - NOTES_MIN_WIDTH,
        size=size,
    )
    notes_width = max(NOTES_MIN_WIDTH, table_width - occupied - name_width - pair_width)
    up, down, id_column, *history_and_attributes = fixed
    return [
        up,
        down,
        id_column,
        Column("name", "Name", name_width),
        Column("pair", "Pair", pair_width),
        *history_and_attributes,
        Column("notes", WEEK1_NOTES_HEADER, notes_width),
    ]


def week2_columns(rows: Sequence[TryoutSheetRow], *, table_width: float, size: float) -> List[Column]:
    """Columns of one half-page team table; the name column absorbs the slack."""

    id_width = column_width("ID", (r.id_label for r in rows), min_width=18, max_width=30, size=size)
    pair_width = column_width(
        "Pair", (r.pair_name for r in rows if r.has_pair), min_width=44, max_width=64, size=size
    )
    ld_width = column_width(
        "LD", (r.last_division_label for r in rows), min_width=18, max_width=30, size=size
    )
    ls_width = column_width(
        "LS", (r.last_season_label for r in rows), min_width=18, max_width=24, size=size
    )
    positions_width = column_width("Pos", (r.positions_label for r in rows), min_width=28, size=size)
    height_width = column_width("H", (r.height_label for r in rows), min_width=14, max_width=30, size=size)
    gender_width = column_width("M?", (r.gender_label for r in rows), min_width=14, max_width=22, size=size)
    occupied = id_width + pair_width + ld_width + ls_width + positions_width + height_width + gender_width
    name_width = max(WEEK2_NAME_MIN_WIDTH, table_width - occupied - WEEK2_NOTES_WIDTH)
    return [
        Column("id", "ID", id_width),
        Column("name", "Name", name_width),
        Column("pair", "Pair", pair_width),
        Column("last_division", "LD", ld_width),
        Column("last_season", "LS", ls_width),
        Column("positions", "Pos", positions_width),
        Column("height", "H", height_width),
        Column("gender", "M?", gender_width),
        Column("notes", "Notes", WEEK2_NOTES_WIDTH),
    ]


def cell_value(column: Column, row: TryoutSheetRow) -> str:
    return {
        "id": row.id_label,
        "name": row.name,
        "pair": row.pair_name,
        "last_division": row.last_division_label,
        "last_season": row.last_season_label,
        "positions": row.positions_label,
        "height": row.height_label,
        "gender": row.gender_label,
    }.get(column.key, "")


def highlight_for(column: Column, row: TryoutSheetRow) -> Optional[Tuple[float, float, float]]:
    if column.key == "positions" and "S" in row.positions_label:
        return HIGHLIGHT_YELLOW
    if column.key == "gender" and row.gender_label == "NM":
        return HIGHLIGHT_YELLOW
    if column.key == "pair" and row.has_pair:
        return HIGHLIGHT_GREEN
    if column.key in ("last_season", "last_division") and row.has_blank_history:
        return HIGHLIGHT_GREEN
    return None


# Week 1 grouping ---------------------------------------------------------
def group_week1(
    placed_rows: Iterable[Tuple[SessionCourt, TryoutSheetRow]]
) -> Dict[SessionCourt, List[TryoutSheetRow]]:
    groups: Dict[SessionCourt, List[TryoutSheetRow]] = {}
    for key, row in placed_rows:
        groups.setdefault(key, []).append(row)
    return groups


def week1_pages(groups: Dict[SessionCourt, List[TryoutSheetRow]]) -> List[SessionCourt]:
    """Every court of every session that has at least one row."""

    sessions = sorted({key.session for key in groups})
    return [SessionCourt(session, court) for session in sessions for court in WEEK1_COURTS]


def week1_row_height(groups: Dict[SessionCourt, List[TryoutSheetRow]], available_height: float) -> int:
    max_rows = max([1, *(len(rows) for rows in groups.values())])
    return max(WEEK1_MIN_ROW_HEIGHT, min(WEEK1_MAX_ROW_HEIGHT, math.floor(available_height / max_rows)))


# Week 2 grouping ---------------------------------------------------------
def group_week2(
    placed_rows: Iterable[Tuple[DivisionTeam, TryoutSheetRow]]
) -> Dict[DivisionTeam, List[TryoutSheetRow]]:
    groups: Dict[DivisionTeam, List[TryoutSheetRow]] = {}
    for key, row in placed_rows:
        groups.setdefault(key, []).append(row)
    for rows in groups.values():
        rows.sort(key=lambda row: row.name.lower())
    return groups


def unplaced_keys(groups: Dict[DivisionTeam, List[TryoutSheetRow]]) -> List[DivisionTeam]:
    """Division/team keys that no week-2 matchup page will show."""

    teams = {team for pair in SESSION_MATCHUPS.values() for team in pair}
    return sorted(
        key for key in groups if key.division not in KNOWN_DIVISIONS or key.team not in teams
    )


def week2_pages(groups: Dict[DivisionTeam, List[TryoutSheetRow]]) -> List[Week2Page]:
    for key in unplaced_keys(groups):
        log.warning(
            "Week 2 rows for division %s team %s fall outside the matchup pages (%d rows)",
            key.division,
            key.team,
            len(groups[key]),
        )

    pages: List[Week2Page] = []
    for session, (home, away) in SESSION_MATCHUPS.items():
        for page_index, divisions in enumerate(PAGE_DIVISIONS):
            page_groups = tuple(
                MatchupGroup(
                    division=division,
                    court=COURT_BY_DIVISION.get(division, 0),
                    session=session,
                    home_team=home,
                    away_team=away,
                    home_rows=tuple(groups.get(DivisionTeam(division, home), ())),
                    away_rows=tuple(groups.get(DivisionTeam(division, away), ())),
                )
                for division in divisions
            )
            pages.append(Week2Page(session=session, page_index=page_index, groups=page_groups))
    return pages


def week2_row_height(group: MatchupGroup, *, group_height: float, header_height: float) -> float:
    most_rows = max(len(group.home_rows), len(group.away_rows), 1)
    return max(WEEK2_MIN_ROW_HEIGHT, (group_height - header_height) / most_rows)


__all__ = [
    "BOLD_FONT",
    "COURT_BY_DIVISION",
    "Column",
    "DivisionTeam",
    "ELLIPSIS",
    "HIGHLIGHT_GREEN",
    "HIGHLIGHT_YELLOW",
    "MatchupGroup",
    "PAGE_DIVISIONS",
    "PAGE_HEIGHT",
    "PAGE_WIDTH",
    "REGULAR_FONT",
    "SESSION_MATCHUPS",
    "SessionCourt",
    "WEEK1_COURTS",
    "Week2Page",
    "cell_value",
    "column_width",
    "elastic_widths",
    "fit_text_to_cell",
    "group_week1",
    "group_week2",
    "highlight_for",
    "natural_width",
    "text_width",
    "truncate_to_fit",
    "unplaced_keys",
    "week1_columns",
    "week1_pages",
    "week1_row_height",
    "week2_columns",
    "week2_pages",
    "week2_row_height",
]
