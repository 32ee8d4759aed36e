"""Per-request context and the role checks that gate every handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .audit import AuditLog
from .config import Settings
from .errors import Forbidden, InvalidRequest
from .models import Role, Season
from .repository import LeagueRepository


@dataclass(frozen=True)
class RequestContext:
    """Everything a handler needs, resolved once when the request arrives."""

    repository: LeagueRepository
    viewer_id: Optional[str]
    season: Optional[Season]
    settings: Settings
    audit: AuditLog

    def record(self, action, entity_type: str, summary: str, entity_id=None) -> None:
        self.audit.record(self.viewer_id, action, entity_type, summary, entity_id)


# Role predicates ---------------------------------------------------------
def is_admin_or_director(repository: LeagueRepository, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return repository.get_user_role(user_id) in (Role.ADMIN.value, Role.DIRECTOR.value)


def is_commissioner_for_season(
    repository: LeagueRepository, user_id: Optional[str], season_id: int
) -> bool:
    if not user_id:
        return False
    return repository.is_commissioner_for_season(user_id, season_id)


def is_captain_for_season(
    repository: LeagueRepository, user_id: Optional[str], season_id: int
) -> bool:
    if not user_id:
        return False
    return repository.is_captain_for_season(user_id, season_id)


def is_commissioner(ctx: RequestContext) -> bool:
    """Admins and directors count as commissioners of every season."""

    if is_admin_or_director(ctx.repository, ctx.viewer_id):
        return True
    if ctx.season is None:
        return False
    return is_commissioner_for_season(ctx.repository, ctx.viewer_id, ctx.season.id)


def has_administrative_access(ctx: RequestContext) -> bool:
    if is_commissioner(ctx):
        return True
    if ctx.season is None:
        return False
    return is_captain_for_season(ctx.repository, ctx.viewer_id, ctx.season.id)


# Guards ------------------------------------------------------------------
def require_viewer(ctx: RequestContext) -> str:
    if not ctx.viewer_id:
        raise Forbidden("You need to be logged in.")
    return ctx.viewer_id


def require_admin(ctx: RequestContext) -> str:
    if not is_admin_or_director(ctx.repository, ctx.viewer_id):
        raise Forbidden()
    return ctx.viewer_id  # type: ignore[return-value]


def require_commissioner(ctx: RequestContext) -> str:
    if not is_commissioner(ctx):
        raise Forbidden()
    return ctx.viewer_id  # type: ignore[return-value]


def require_administrative_access(ctx: RequestContext) -> str:
    if not has_administrative_access(ctx):
        raise Forbidden()
    return ctx.viewer_id  # type: ignore[return-value]


def require_season(ctx: RequestContext) -> Season:
    if ctx.season is None:
        raise InvalidRequest("No current season found.")
    return ctx.season


__all__ = [
    "RequestContext",
    "has_administrative_access",
    "is_admin_or_director",
    "is_captain_for_season",
    "is_commissioner",
    "is_commissioner_for_season",
    "require_admin",
    "require_administrative_access",
    "require_commissioner",
    "require_season",
    "require_viewer",
]
