from datetime import datetime, timezone

import pytest

from reportlab.pdfgen import canvas

from league_dashboard import tryout_sheets
from league_dashboard.errors import Forbidden, NotFound

from conftest import make_user


def _seed_week1(repository, season_id, count=40):
    # Session 1 uses courts 1-4, session 2 leaves court 4 empty.
    placements = [(1, court) for court in range(1, 5)] + [(2, court) for court in range(1, 4)]
    for index in range(count):
        user_id = f"w1-{index}"
        repository.add_user(
            make_user(user_id, f"Player{index}", f"Surname{index:02d}", old_id=500 + index, height=60 + index % 20)
        )
        session, court = placements[index % len(placements)]
        repository.add_week1_slot(season_id, user_id, session_number=session, court_number=court)


def test_generated_stamp_uses_local_time():
    now = datetime(2026, 1, 15, 20, 5, tzinfo=timezone.utc)
    assert tryout_sheets.generated_stamp(now, "America/New_York") == "01/15/2026, 03:05 PM"


def test_week1_sheets_have_a_page_per_court(admin_ctx, repository, league):
    _seed_week1(repository, league.season.id)
    sheet = tryout_sheets.build_week1_sheets(admin_ctx)
    assert sheet.content.startswith(b"%PDF")
    assert sheet.page_count == 8
    assert sheet.filename == "bsd-week1-spring-2025.pdf"
    (entry,) = repository.list_audit_entries()
    assert (entry.action, entry.entity_type) == ("read", "week1_rosters")


def test_week1_empty_court_page_says_no_players(admin_ctx, repository, league, monkeypatch):
    for court, user_id in enumerate(("p1", "p2", "p3"), start=1):
        repository.add_week1_slot(league.season.id, user_id, session_number=1, court_number=court)

    drawn = []
    page = [0]
    draw_string = canvas.Canvas.drawString
    show_page = canvas.Canvas.showPage

    def record_string(self, x, y, text, *args, **kwargs):
        drawn.append((page[0], text))
        return draw_string(self, x, y, text, *args, **kwargs)

    def record_page(self):
        page[0] += 1
        return show_page(self)

    monkeypatch.setattr(canvas.Canvas, "drawString", record_string)
    monkeypatch.setattr(canvas.Canvas, "showPage", record_page)

    sheet = tryout_sheets.build_week1_sheets(admin_ctx)
    assert sheet.page_count == 4
    assert [index for index, text in drawn if text == tryout_sheets.EMPTY_PAGE_TEXT] == [3]
    assert (3, "Spring 2025 Week 1 Tryouts - Session 1 - Court 4") in drawn


def test_week1_sheets_ignore_later_sessions(admin_ctx, repository, league):
    repository.add_week1_slot(league.season.id, "p1", session_number=1, court_number=2)
    repository.add_week1_slot(league.season.id, "p2", session_number=3, court_number=1)
    assert tryout_sheets.build_week1_sheets(admin_ctx).page_count == 4


def test_week1_sheets_without_rows(admin_ctx):
    with pytest.raises(NotFound, match="No week 1 tryout roster rows found for sessions 1-2."):
        tryout_sheets.build_week1_sheets(admin_ctx)


def test_tryout_sheets_require_admin(context_for, repository, league):
    _seed_week1(repository, league.season.id, count=4)
    with pytest.raises(Forbidden):
        tryout_sheets.build_week1_sheets(context_for("comm"))
    with pytest.raises(Forbidden):
        tryout_sheets.build_week2_sheets(context_for(None))
    assert repository.list_audit_entries() == []


def test_week2_sheets_always_have_six_pages(admin_ctx, repository, league):
    aa = league.divisions["AA"].id
    bb = league.divisions["BB"].id
    repository.add_week2_slot(league.season.id, "cap", division_id=aa, team_number=1, is_captain=True)
    repository.add_week2_slot(league.season.id, "p3", division_id=aa, team_number=2)
    repository.add_week2_slot(league.season.id, "p2", division_id=bb, team_number=4)
    sheet = tryout_sheets.build_week2_sheets(admin_ctx)
    assert sheet.page_count == 6
    assert sheet.content.startswith(b"%PDF")
    assert sheet.filename == "bsd-week2-spring-2025.pdf"


def test_week2_sheets_without_rows(admin_ctx):
    with pytest.raises(NotFound, match="No week 2 tryout roster rows found for current season."):
        tryout_sheets.build_week2_sheets(admin_ctx)
