import pytest

from league_dashboard import handlers
from league_dashboard.errors import Forbidden, InvalidRequest, NotFound
from league_dashboard.handlers import (
    CommissionerAssignment,
    DivisionEvaluation,
    DraftPick,
    PlayerChanges,
    SlotAssignment,
    TeamEntry,
)


# Week 1 ------------------------------------------------------------------
@pytest.fixture
def week1_slots(repository, league):
    season_id = league.season.id
    return [
        repository.add_week1_slot(season_id, "p1", session_number=1, court_number=1),
        repository.add_week1_slot(season_id, "p2", session_number=1, court_number=2),
    ]


def test_week1_duplicate_player_rejected_before_any_write(admin_ctx, repository, league, week1_slots):
    first, second = week1_slots
    with pytest.raises(InvalidRequest, match="multiple week 1 slots"):
        handlers.update_week1_rosters(
            admin_ctx, [SlotAssignment(first, "p3"), SlotAssignment(second, "p3")]
        )
    assert [slot.user_id for slot in repository.list_week1_slots(league.season.id)] == ["p1", "p2"]
    assert repository.list_audit_entries() == []


def test_week1_rejects_empty_batch_and_unsigned_players(admin_ctx, week1_slots):
    with pytest.raises(InvalidRequest, match="No updates provided."):
        handlers.update_week1_rosters(admin_ctx, [])
    with pytest.raises(InvalidRequest, match="must be signed up"):
        handlers.update_week1_rosters(admin_ctx, [SlotAssignment(week1_slots[0], "outsider")])


def test_week1_requires_admin(context_for, week1_slots):
    with pytest.raises(Forbidden):
        handlers.update_week1_rosters(context_for("comm"), [SlotAssignment(week1_slots[0], "p3")])


def test_week1_reassigns_slots_and_audits(admin_ctx, repository, league, week1_slots):
    result = handlers.update_week1_rosters(
        admin_ctx, [SlotAssignment(week1_slots[0], "p2"), SlotAssignment(week1_slots[1], "p1")]
    )
    assert result.status
    assert result.message == "Week 1 rosters updated successfully."
    assert [slot.user_id for slot in repository.list_week1_slots(league.season.id)] == ["p2", "p1"]
    assert [entry.entity_type for entry in repository.list_audit_entries()] == ["week1_rosters"]


def test_week1_edit_data_lists_signed_up_players(admin_ctx, week1_slots):
    data = handlers.load_week1_edit_data(admin_ctx)
    assert data.season_label == "Spring 2025"
    assert [player.id for player in data.players] == ["cap", "p4", "p1", "p3", "p2"]
    assert [slot.id for slot in data.week1_slots] == week1_slots


# Week 2 ------------------------------------------------------------------
@pytest.fixture
def week2_slots(repository, league):
    season_id = league.season.id
    aa = league.divisions["AA"].id
    return {
        "captain": repository.add_week2_slot(season_id, "cap", division_id=aa, team_number=1, is_captain=True),
        "player": repository.add_week2_slot(season_id, "p1", division_id=aa, team_number=1),
    }


def test_week2_edit_data_skips_players_missing_the_date(admin_ctx, week2_slots):
    data = handlers.load_week2_edit_data(admin_ctx)
    assert "p4" not in [player.id for player in data.players]
    assert "p2" in [player.id for player in data.players]
    assert data.week2_slots[0].division_name == "AA"


def test_week2_captain_slot_needs_captain_of_that_division(admin_ctx, week2_slots):
    with pytest.raises(InvalidRequest, match="Captain slots"):
        handlers.update_week2_rosters(admin_ctx, [SlotAssignment(week2_slots["captain"], "p2")])
    with pytest.raises(InvalidRequest, match="roster slots are invalid"):
        handlers.update_week2_rosters(admin_ctx, [SlotAssignment(9999, "p2")])

    result = handlers.update_week2_rosters(
        admin_ctx,
        [SlotAssignment(week2_slots["captain"], "cap"), SlotAssignment(week2_slots["player"], "p2")],
    )
    assert result.message == "Week 2 rosters updated successfully."


# Evaluations -------------------------------------------------------------
def test_evaluation_page_lists_undrafted_players(admin_ctx):
    page = handlers.load_evaluation_page(admin_ctx)
    assert sorted(player.user_id for player in page.players) == ["cap", "p2", "p4"]
    assert all(player.division is None for player in page.players)


def test_save_evaluations_replaces_previous_rating(admin_ctx):
    handlers.save_evaluations(admin_ctx, [DivisionEvaluation("p2", "BB")])
    result = handlers.save_evaluations(admin_ctx, [DivisionEvaluation("p2", "A")])
    assert result.message == "Evaluations saved successfully."
    ratings = {player.user_id: player.division for player in handlers.load_evaluation_page(admin_ctx).players}
    assert ratings["p2"] == "A"
    assert ratings["p4"] is None


def test_save_evaluations_rejects_unknown_division(admin_ctx):
    with pytest.raises(InvalidRequest, match="Invalid division: ZZ"):
        handlers.save_evaluations(admin_ctx, [DivisionEvaluation("p2", "ZZ")])


# Commissioners -----------------------------------------------------------
def test_load_commissioners_has_two_slots_per_division(admin_ctx, league):
    slots = handlers.load_commissioners(admin_ctx, league.season.id)
    assert [slot.division_name for slot in slots] == ["AA", "A", "ABA", "ABB", "BBB", "BB"]
    assert slots[0].commissioner_1 == "comm"
    assert slots[0].commissioner_2 is None


def test_save_commissioners(admin_ctx, repository, league):
    aa, bb = league.divisions["AA"].id, league.divisions["BB"].id
    with pytest.raises(InvalidRequest, match="both slots"):
        handlers.save_commissioners(admin_ctx, league.season.id, [CommissionerAssignment(aa, "p1", "p1")])
    with pytest.raises(NotFound):
        handlers.save_commissioners(admin_ctx, 999, [])

    handlers.save_commissioners(
        admin_ctx,
        league.season.id,
        [CommissionerAssignment(aa, "p1", "p2"), CommissionerAssignment(bb, "comm")],
    )
    assert repository.list_commissioners(league.season.id) == [(aa, "p1"), (aa, "p2"), (bb, "comm")]


# Teams and draft ---------------------------------------------------------
def test_create_teams_validates_team_count_and_captains(context_for, league):
    ctx = context_for("comm")
    bb = league.divisions["BB"].id
    with pytest.raises(InvalidRequest, match="Division BB requires 4 teams."):
        handlers.create_teams(ctx, bb, [TeamEntry("p1", "One")])
    with pytest.raises(InvalidRequest, match="unique captain"):
        handlers.create_teams(
            ctx, bb, [TeamEntry("p1", "A"), TeamEntry("p1", "B"), TeamEntry("p2", "C"), TeamEntry("p3", "D")]
        )
    with pytest.raises(InvalidRequest, match="name for team 2"):
        handlers.create_teams(
            ctx, bb, [TeamEntry("p1", "A"), TeamEntry("p2", " "), TeamEntry("p3", "C"), TeamEntry("p4", "D")]
        )
    with pytest.raises(Forbidden):
        handlers.create_teams(context_for("p1"), bb, [TeamEntry("p1", "One")])


def test_create_teams_then_update(context_for, repository, league):
    ctx = context_for("comm")
    bb = league.divisions["BB"].id
    teams = [TeamEntry("cap", "Aces"), TeamEntry("p1", "Bumps"), TeamEntry("p2", "Cats"), TeamEntry("p3", "Digs")]
    assert handlers.create_teams(ctx, bb, teams).message == "Successfully created 4 teams!"

    renamed = teams[:3] + [TeamEntry("p4", "Dunks")]
    assert handlers.create_teams(ctx, bb, renamed).message == "Successfully updated 4 teams!"
    saved = repository.list_teams(league.season.id, division_id=bb)
    assert [(team.number, team.captain_id, team.name) for team in saved] == [
        (1, "cap", "Aces"),
        (2, "p1", "Bumps"),
        (3, "p2", "Cats"),
        (4, "p4", "Dunks"),
    ]


def test_draft_overall_is_snake_ordered():
    assert handlers.draft_overall(level=1, round=1, team_number=1, team_count=6) == 1
    assert handlers.draft_overall(level=1, round=1, team_number=6, team_count=6) == 6
    assert handlers.draft_overall(level=1, round=2, team_number=6, team_count=6) == 7
    assert handlers.draft_overall(level=1, round=2, team_number=1, team_count=6) == 12
    assert handlers.draft_overall(level=3, round=1, team_number=2, team_count=4) == 102


def test_submit_draft(context_for, repository, league):
    ctx = context_for("comm")
    aa = league.divisions["AA"].id
    with pytest.raises(InvalidRequest, match="drafted more than once"):
        handlers.submit_draft(ctx, aa, [DraftPick(league.team.id, "p2", 1), DraftPick(league.team.id, "p2", 2)])
    with pytest.raises(InvalidRequest, match="once per round"):
        handlers.submit_draft(ctx, aa, [DraftPick(league.team.id, "p2", 1), DraftPick(league.team.id, "p4", 1)])
    with pytest.raises(InvalidRequest, match="teams are invalid"):
        handlers.submit_draft(ctx, aa, [DraftPick(league.old_team.id, "p2", 1)])

    result = handlers.submit_draft(ctx, aa, [DraftPick(league.team.id, "p2", 1), DraftPick(league.team.id, "p4", 2)])
    assert result.message == "Successfully submitted 2 draft picks!"
    picks = {record.user_id: record.overall for record in repository.list_draft_history(["p2", "p4"])}
    assert picks == {"p2": 1, "p4": 2}


# Waitlist ----------------------------------------------------------------
def test_waitlist_interest_is_recorded_once(context_for):
    ctx = context_for("outsider")
    assert handlers.express_waitlist_interest(ctx).status
    with pytest.raises(InvalidRequest, match="already expressed interest"):
        handlers.express_waitlist_interest(ctx)
    with pytest.raises(Forbidden):
        handlers.express_waitlist_interest(context_for(None))


def test_waitlist_allows_one_entry_per_user_and_season(repository, league):
    first = repository.add_waitlist_entry(league.season.id, "outsider")
    assert first is not None
    assert repository.add_waitlist_entry(league.season.id, "outsider") is None
    assert [entry.waitlist_id for entry in repository.list_waitlist(league.season.id)] == [first]
    assert repository.add_waitlist_entry(league.previous.id, "outsider") is not None


def test_waitlist_approval(admin_ctx, context_for, repository, league):
    handlers.express_waitlist_interest(context_for("p1"))
    page = handlers.load_waitlist(admin_ctx)
    entry = page.entries[0]
    assert entry.user_id == "p1"
    assert entry.last_division == "AA"
    assert not entry.approved

    result = handlers.set_waitlist_approval(admin_ctx, entry.waitlist_id, True)
    assert result.message == "Player approved from waitlist."
    assert handlers.load_waitlist(admin_ctx).entries[0].approved
    result = handlers.set_waitlist_approval(admin_ctx, entry.waitlist_id, False)
    assert result.message == "Player unapproved on waitlist."
    with pytest.raises(NotFound):
        handlers.set_waitlist_approval(admin_ctx, 12345, True)


# Signups -----------------------------------------------------------------
def test_admin_signups_include_pair_and_draft_history(admin_ctx):
    entries = {entry.user_id: entry for entry in handlers.load_admin_signups(admin_ctx).entries}
    assert entries["p3"].pair_pick_name == "Pia Four"
    assert entries["p1"].last_draft_season == "F24"
    assert entries["p1"].last_draft_division == "AA"
    assert entries["p1"].last_draft_captain == "Carl Captain"
    assert entries["p1"].last_draft_overall == 1
    assert not entries["p1"].is_new
    assert entries["p2"].is_new
    assert entries["p2"].age == "25"


def test_delete_signup_audits_full_record(admin_ctx, repository, league):
    signup_id = league.signups["p2"]
    assert handlers.delete_signup(admin_ctx, signup_id).message == "Signup entry deleted."
    assert repository.get_signup(league.season.id, signup_id) is None
    (entry,) = repository.list_audit_entries()
    assert entry.action == "delete"
    assert "Full deleted signup record" in entry.summary
    assert '"player_id": "p2"' in entry.summary

    with pytest.raises(NotFound):
        handlers.delete_signup(admin_ctx, signup_id)
    with pytest.raises(InvalidRequest):
        handlers.delete_signup(admin_ctx, 0)


def test_signup_groups_put_new_players_first(context_for):
    groups = handlers.load_signup_groups(context_for("cap"))
    assert [group.label for group in groups] == ["New Players", "AA"]
    assert [entry.user_id for entry in groups[0].players] == ["cap", "p4", "p2"]
    assert [entry.user_id for entry in groups[1].players] == ["p1", "p3"]
    with pytest.raises(Forbidden):
        handlers.load_signup_groups(context_for("p2"))


# Players -----------------------------------------------------------------
def test_edit_player_validates_height_and_email(admin_ctx, repository):
    with pytest.raises(InvalidRequest, match="Height must be between"):
        handlers.edit_player(admin_ctx, "p2", PlayerChanges(height=30))
    with pytest.raises(InvalidRequest, match="already used"):
        handlers.edit_player(admin_ctx, "p2", PlayerChanges(email="P1@example.com"))
    with pytest.raises(NotFound):
        handlers.edit_player(admin_ctx, "nobody", PlayerChanges(height=70))

    result = handlers.edit_player(
        admin_ctx, "p2", PlayerChanges(first_name=" Pamela ", height=68, skill_passer=True, captain_eligible=False)
    )
    assert result.message == "Player updated successfully."
    user = repository.get_user("p2")
    assert (user.first_name, user.height, user.skill_passer, user.captain_eligible) == ("Pamela", 68, True, False)


# Pictures ----------------------------------------------------------------
def test_expected_picture_filename(repository, league):
    assert handlers.expected_picture_filename(repository.get_user("p2")) == "102_PT.jpg"
    assert handlers.expected_picture_filename(repository.get_user("outsider")) is None


def test_finalize_picture_upload(context_for, repository):
    ctx = context_for("comm")
    assert "p2" in [player.user_id for player in handlers.load_players_needing_pictures(ctx)]
    with pytest.raises(InvalidRequest, match="does not match the expected format"):
        handlers.finalize_picture_upload(ctx, "p2", "wrong.jpg")
    with pytest.raises(InvalidRequest, match="not signed up"):
        handlers.finalize_picture_upload(ctx, "outsider", "x.jpg")

    assert handlers.finalize_picture_upload(ctx, "p2", "102_PT.jpg").message == "Player picture uploaded."
    assert handlers.finalize_picture_upload(ctx, "p2", "102_PT.jpg").message == "Picture already uploaded."
    assert repository.get_user("p2").picture == "102_PT.jpg"
    assert "p2" not in [player.user_id for player in handlers.load_players_needing_pictures(ctx)]
    with pytest.raises(Forbidden):
        handlers.finalize_picture_upload(context_for("p1"), "p2", "102_PT.jpg")
