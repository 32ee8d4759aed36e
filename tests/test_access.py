import dataclasses

import pytest

from league_dashboard import access
from league_dashboard.errors import Forbidden, InvalidRequest

from conftest import make_user


def test_role_predicates(context_for):
    assert access.is_commissioner(context_for("admin"))
    assert access.is_commissioner(context_for("comm"))
    assert not access.is_commissioner(context_for("cap"))

    assert access.has_administrative_access(context_for("cap"))
    assert access.has_administrative_access(context_for("comm"))
    assert not access.has_administrative_access(context_for("p2"))
    assert not access.has_administrative_access(context_for(None))


def test_commissioner_scope_is_per_season(repository, league):
    assert access.is_commissioner_for_season(repository, "comm", league.season.id)
    assert not access.is_commissioner_for_season(repository, "comm", league.previous.id)
    assert access.is_captain_for_season(repository, "cap", league.previous.id)
    assert not access.is_captain_for_season(repository, None, league.season.id)


def test_guards(context_for):
    with pytest.raises(Forbidden, match="logged in"):
        access.require_viewer(context_for(None))
    with pytest.raises(Forbidden):
        access.require_admin(context_for("comm"))
    with pytest.raises(Forbidden):
        access.require_commissioner(context_for("p1"))
    assert access.require_admin(context_for("admin")) == "admin"
    assert access.require_administrative_access(context_for("cap")) == "cap"


def test_require_season(admin_ctx, league):
    assert access.require_season(admin_ctx).id == league.season.id
    without_season = dataclasses.replace(admin_ctx, season=None)
    with pytest.raises(InvalidRequest, match="No current season found."):
        access.require_season(without_season)
    assert not access.is_commissioner(dataclasses.replace(without_season, viewer_id="comm"))


def test_directors_share_admin_access(repository, context_for):
    repository.add_user(make_user("dir", "Dana", "Director", role="director"))
    assert access.is_admin_or_director(repository, "dir")
    assert access.is_admin_or_director(repository, "admin")
    assert not access.is_admin_or_director(repository, "comm")
    assert not access.is_admin_or_director(repository, None)
    assert access.require_admin(context_for("dir")) == "dir"
    assert access.is_commissioner(context_for("dir"))
