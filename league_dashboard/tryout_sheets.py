"""Week 1 and week 2 tryout sheet PDFs.

Both builders follow the same steps: check access, load the season's roster
rows with pair names and draft history, lay the rows out with
:mod:`league_dashboard.layout`, then draw them with a reportlab canvas. A
document is either produced whole or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from reportlab.pdfgen import canvas

from . import labels, layout
from .access import RequestContext, require_admin, require_season
from .errors import NotFound, guarded
from .layout import (
    BOLD_FONT,
    PAGE_HEIGHT,
    PAGE_WIDTH,
    REGULAR_FONT,
    Column,
    DivisionTeam,
    MatchupGroup,
    SessionCourt,
)
from .models import AuditAction, DraftRecord, TryoutSheetRow, User


log = logging.getLogger(__name__)

WEEK1_SESSIONS = (1, 2)
NOTES_PROMPT = "Pass __  Set __  Hit __  Serve __"
EMPTY_PAGE_TEXT = "No players assigned"


@dataclass(frozen=True)
class Week1Geometry:
    margin: float = 32
    header_text_size: float = 18
    subheader_text_size: float = 10
    cell_font_size: float = 12
    header_row_height: float = 24
    checkbox_size: float = 8

    @property
    def table_width(self) -> float:
        return PAGE_WIDTH - self.margin * 2

    @property
    def table_top(self) -> float:
        return PAGE_HEIGHT - self.margin - 72

    @property
    def available_rows_height(self) -> float:
        return self.table_top - self.header_row_height - self.margin

    @property
    def notes_font_size(self) -> float:
        return max(7, self.cell_font_size - 2)


@dataclass(frozen=True)
class Week2Geometry:
    margin: float = 24
    header_text_size: float = 9
    subheader_text_size: float = 9
    cell_font_size: float = 9
    header_row_height: float = 14
    title_block_height: float = 16

    @property
    def table_width(self) -> float:
        return PAGE_WIDTH - self.margin * 2

    @property
    def single_table_width(self) -> float:
        return self.table_width / 2

    @property
    def group_height(self) -> float:
        return (PAGE_HEIGHT - self.margin * 2 - self.title_block_height) / 3


WEEK1 = Week1Geometry()
WEEK2 = Week2Geometry()


@dataclass(frozen=True)
class RenderedSheet:
    content: bytes
    page_count: int
    filename: str


def generated_stamp(now: datetime, tz_name: str) -> str:
    """``"10/18/2026, 03:05 PM"`` in the league's local time zone."""

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).strftime("%m/%d/%Y, %I:%M %p")


# Drawing helpers ---------------------------------------------------------
def _text_y(top: float, height: float, size: float) -> float:
    return top - (height + size) / 2


def _vertical_line(pdf: canvas.Canvas, x: float, top: float, height: float) -> None:
    pdf.line(x, top, x, top - height)


def _fill_rect(pdf: canvas.Canvas, x: float, y: float, width: float, height: float, color) -> None:
    pdf.setFillColorRGB(*color)
    pdf.rect(x, y, width, height, stroke=0, fill=1)
    pdf.setFillColorRGB(0, 0, 0)


def _draw_arrow(pdf: canvas.Canvas, center_x: float, center_y: float, *, up: bool) -> None:
    half_height, half_width = 4, 3
    tip = center_y + half_height if up else center_y - half_height
    tail = center_y - half_height if up else center_y + half_height
    barb = tip - 2 if up else tip + 2
    pdf.line(center_x, tail, center_x, tip)
    pdf.line(center_x, tip, center_x - half_width, barb)
    pdf.line(center_x, tip, center_x + half_width, barb)


def _draw_header_row(
    pdf: canvas.Canvas,
    columns: Sequence[Column],
    *,
    left: float,
    top: float,
    width: float,
    height: float,
    size: float,
    fill: float,
    labels_by_key: Optional[Dict[str, str]] = None,
    truncate: bool = False,
) -> None:
    _fill_rect(pdf, left, top - height, width, height, (fill, fill, fill))
    pdf.rect(left, top - height, width, height, stroke=1, fill=0)
    pdf.setFont(BOLD_FONT, size)
    x = left
    for column in columns:
        if column.key in ("up", "down"):
            _draw_arrow(pdf, x + column.width / 2, top - height / 2, up=column.key == "up")
        else:
            text = (labels_by_key or {}).get(column.key, column.label)
            if truncate:
                text = layout.truncate_to_fit(text, column.width - 8, BOLD_FONT, size)
            pdf.drawString(x + 4, _text_y(top, height, size), text)
        _vertical_line(pdf, x, top, height)
        x += column.width
    _vertical_line(pdf, left + width, top, height)


def _draw_row_frame(
    pdf: canvas.Canvas,
    columns: Sequence[Column],
    row: TryoutSheetRow,
    *,
    left: float,
    top: float,
    width: float,
    height: float,
) -> None:
    x = left
    for column in columns:
        color = layout.highlight_for(column, row)
        if color is not None:
            _fill_rect(pdf, x + 1, top - height + 1, column.width - 2, height - 2, color)
        x += column.width
    pdf.rect(left, top - height, width, height, stroke=1, fill=0)
    x = left
    for column in columns:
        _vertical_line(pdf, x, top, height)
        x += column.width
    _vertical_line(pdf, left + width, top, height)


# Week 1 ------------------------------------------------------------------
def render_week1(
    groups: Dict[SessionCourt, List[TryoutSheetRow]],
    *,
    season_label: str,
    generated: str,
    geometry: Week1Geometry = WEEK1,
) -> Tuple[bytes, int]:
    """Draw one page per session and court; returns the PDF bytes and page count."""

    all_rows = [row for rows in groups.values() for row in rows]
    columns = layout.week1_columns(all_rows, table_width=geometry.table_width, size=geometry.cell_font_size)
    row_height = layout.week1_row_height(groups, geometry.available_rows_height)
    pages = layout.week1_pages(groups)
    size = geometry.cell_font_size

    buf = BytesIO()
    pdf = canvas.Canvas(buf, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
    for key in pages:
        title = f"{season_label} Week 1 Tryouts - Session {key.session} - Court {key.court}"
        pdf.setFont(BOLD_FONT, geometry.header_text_size)
        pdf.drawString(geometry.margin, PAGE_HEIGHT - geometry.margin - geometry.header_text_size, title)
        pdf.setFont(REGULAR_FONT, geometry.subheader_text_size)
        pdf.setFillColorRGB(0.2, 0.2, 0.2)
        pdf.drawString(
            PAGE_WIDTH - geometry.margin - 180,
            PAGE_HEIGHT - geometry.margin - geometry.header_text_size - 18,
            f"Generated {generated} ET",
        )
        pdf.setFillColorRGB(0, 0, 0)

        top = geometry.table_top
        _draw_header_row(
            pdf,
            columns,
            left=geometry.margin,
            top=top,
            width=geometry.table_width,
            height=geometry.header_row_height,
            size=size,
            fill=0.95,
        )
        top -= geometry.header_row_height

        rows = groups.get(key, [])
        if not rows:
            pdf.setFont(REGULAR_FONT, size)
            pdf.drawString(geometry.margin + 4, _text_y(top, row_height, size), EMPTY_PAGE_TEXT)

        for row in rows:
            _draw_row_frame(
                pdf, columns, row, left=geometry.margin, top=top, width=geometry.table_width, height=row_height
            )
            x = geometry.margin
            for column in columns:
                if column.key in ("up", "down"):
                    skip = (column.key == "up" and key.court == 1) or (
                        column.key == "down" and key.court == layout.WEEK1_COURTS[-1]
                    )
                    if not skip:
                        box = geometry.checkbox_size
                        pdf.rect(
                            x + (column.width - box) / 2,
                            top - (row_height + box) / 2,
                            box,
                            box,
                            stroke=1,
                            fill=0,
                        )
                elif column.key == "notes":
                    notes_size = geometry.notes_font_size
                    pdf.setFont(REGULAR_FONT, notes_size)
                    pdf.drawString(
                        x + 4,
                        top - row_height + 3,
                        layout.truncate_to_fit(NOTES_PROMPT, column.width - 8, REGULAR_FONT, notes_size),
                    )
                else:
                    value = layout.cell_value(column, row)
                    if value:
                        pdf.setFont(REGULAR_FONT, size)
                        pdf.drawString(
                            x + 4,
                            _text_y(top, row_height, size) + 2,
                            layout.truncate_to_fit(value, column.width - 8, REGULAR_FONT, size),
                        )
                x += column.width
            top -= row_height
        pdf.showPage()

    pdf.save()
    return buf.getvalue(), len(pages)


# Week 2 ------------------------------------------------------------------
def _draw_team_table(
    pdf: canvas.Canvas,
    columns: Sequence[Column],
    rows: Sequence[TryoutSheetRow],
    *,
    name_header: str,
    left: float,
    top: float,
    row_height: float,
    geometry: Week2Geometry,
) -> None:
    size = geometry.cell_font_size
    width = geometry.single_table_width
    _draw_header_row(
        pdf,
        columns,
        left=left,
        top=top,
        width=width,
        height=geometry.header_row_height,
        size=size,
        fill=0.97,
        labels_by_key={"name": name_header},
        truncate=True,
    )
    top -= geometry.header_row_height
    for row in rows:
        _draw_row_frame(pdf, columns, row, left=left, top=top, width=width, height=row_height)
        x = left
        for column in columns:
            value = layout.cell_value(column, row)
            if value and column.key != "notes":
                if column.key in ("name", "pair"):
                    text, text_size = layout.fit_text_to_cell(
                        value, column.width - 8, REGULAR_FONT, size, layout.WEEK2_MIN_FONT_SIZE
                    )
                else:
                    text = layout.truncate_to_fit(value, column.width - 8, REGULAR_FONT, size)
                    text_size = size
                pdf.setFont(REGULAR_FONT, text_size)
                pdf.drawString(x + 4, _text_y(top, row_height, text_size), text)
            x += column.width
        top -= row_height


def render_week2(
    groups: Dict[DivisionTeam, List[TryoutSheetRow]],
    *,
    season_label: str,
    session_times: Dict[int, str],
    generated: str,
    geometry: Week2Geometry = WEEK2,
) -> Tuple[bytes, int]:
    all_rows = [row for rows in groups.values() for row in rows]
    columns = layout.week2_columns(
        all_rows, table_width=geometry.single_table_width, size=geometry.cell_font_size
    )
    pages = layout.week2_pages(groups)

    buf = BytesIO()
    pdf = canvas.Canvas(buf, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
    for page in pages:
        session_time = session_times.get(page.session) or "Time TBD"
        title = (
            f"{season_label} Week 2 Tryout Sheets - Session {page.session} "
            f"({session_time}) - Page {page.page_index + 1}"
        )
        section_top = PAGE_HEIGHT - geometry.margin - geometry.title_block_height
        pdf.setFont(BOLD_FONT, geometry.header_text_size)
        pdf.drawString(geometry.margin, section_top + 6, title)
        pdf.setFont(REGULAR_FONT, geometry.subheader_text_size)
        pdf.setFillColorRGB(0.2, 0.2, 0.2)
        pdf.drawString(PAGE_WIDTH - geometry.margin - 170, section_top + 6, f"Generated {generated} ET")
        pdf.setFillColorRGB(0, 0, 0)

        for group in page.groups:
            _draw_matchup(pdf, columns, group, top=section_top, session_time=session_time, geometry=geometry)
            section_top -= geometry.group_height
        pdf.showPage()

    pdf.save()
    return buf.getvalue(), len(pages)


def _draw_matchup(
    pdf: canvas.Canvas,
    columns: Sequence[Column],
    group: MatchupGroup,
    *,
    top: float,
    session_time: str,
    geometry: Week2Geometry,
) -> None:
    row_height = layout.week2_row_height(
        group, group_height=geometry.group_height, header_height=geometry.header_row_height
    )
    name_header = f"{group.division} C{group.court} {session_time}"
    for left, rows in (
        (geometry.margin, group.home_rows),
        (geometry.margin + geometry.single_table_width, group.away_rows),
    ):
        _draw_team_table(
            pdf,
            columns,
            rows,
            name_header=name_header,
            left=left,
            top=top,
            row_height=row_height,
            geometry=geometry,
        )


# Row assembly ------------------------------------------------------------
def _pair_names_and_history(
    ctx: RequestContext, entries: Sequence[Tuple[object, User, Optional[str]]]
) -> Tuple[Dict[str, str], Dict[str, DraftRecord]]:
    repository = ctx.repository
    pair_ids = {pair_id for _, _, pair_id in entries if pair_id}
    pair_names = {
        user_id: labels.display_name(user) for user_id, user in repository.get_users(pair_ids).items()
    }
    history = repository.list_draft_history({user.id for _, user, _ in entries})
    return pair_names, labels.latest_draft_by_user(history)


@guarded("Failed to generate tryout sheets PDF.")
def build_week1_sheets(ctx: RequestContext, *, now: Optional[datetime] = None) -> RenderedSheet:
    require_admin(ctx)
    season = require_season(ctx)
    entries = ctx.repository.week1_sheet_rows(season.id, WEEK1_SESSIONS)
    if not entries:
        raise NotFound("No week 1 tryout roster rows found for sessions 1-2.")

    pair_names, latest = _pair_names_and_history(ctx, entries)
    groups = layout.group_week1(
        (
            SessionCourt(slot.session_number, slot.court_number),
            labels.tryout_row(
                user, pair_pick_id=pair_id, pair_names=pair_names, latest_draft=latest.get(user.id)
            ),
        )
        for slot, user, pair_id in entries
    )
    content, page_count = render_week1(
        groups,
        season_label=season.label,
        generated=generated_stamp(now or datetime.now(timezone.utc), ctx.settings.timezone),
    )
    log.info("Rendered week 1 tryout sheets for season %s (%d pages)", season.id, page_count)
    ctx.record(
        AuditAction.READ,
        "week1_rosters",
        f"Downloaded week 1 tryout sheets PDF for season {season.id}",
    )
    return RenderedSheet(
        content=content,
        page_count=page_count,
        filename=labels.sheet_filename(ctx.settings.file_prefix, 1, season.name, season.year),
    )


@guarded("Failed to generate week 2 tryout sheets PDF.")
def build_week2_sheets(ctx: RequestContext, *, now: Optional[datetime] = None) -> RenderedSheet:
    require_admin(ctx)
    season = require_season(ctx)
    entries = ctx.repository.week2_sheet_rows(season.id)
    if not entries:
        raise NotFound("No week 2 tryout roster rows found for current season.")

    pair_names, latest = _pair_names_and_history(ctx, entries)
    groups = layout.group_week2(
        (
            DivisionTeam(slot.division_name, slot.team_number),
            labels.tryout_row(
                user,
                pair_pick_id=pair_id,
                pair_names=pair_names,
                latest_draft=latest.get(user.id),
                team_number=slot.team_number,
            ),
        )
        for slot, user, pair_id in entries
    )
    content, page_count = render_week2(
        groups,
        season_label=season.label,
        session_times={number: season.tryout_2_time(number) for number in layout.SESSION_MATCHUPS},
        generated=generated_stamp(now or datetime.now(timezone.utc), ctx.settings.timezone),
    )
    log.info("Rendered week 2 tryout sheets for season %s (%d pages)", season.id, page_count)
    ctx.record(
        AuditAction.READ,
        "week2_rosters",
        f"Downloaded week 2 tryout sheets PDF for season {season.id}",
    )
    return RenderedSheet(
        content=content,
        page_count=page_count,
        filename=labels.sheet_filename(ctx.settings.file_prefix, 2, season.name, season.year),
    )


__all__ = [
    "RenderedSheet",
    "Week1Geometry",
    "Week2Geometry",
    "build_week1_sheets",
    "build_week2_sheets",
    "generated_stamp",
    "render_week1",
    "render_week2",
]
