"""FastAPI application exposing the league dashboard."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from . import handlers, reports, tryout_sheets
from .access import RequestContext
from .audit import AuditLog
from .config import Settings, configure_logging
from .errors import DashboardError
from .models import ActionResult
from .repository import LeagueRepository


log = logging.getLogger(__name__)

_settings = Settings.from_env()

app = FastAPI(title="League Dashboard API")

_repository = LeagueRepository(_settings.db_path)


@app.on_event("startup")
def _initialize() -> None:
    configure_logging(_settings.log_level)
    _repository.initialize_schema()
    log.info("League dashboard started with database %s", _settings.db_path)


def get_settings() -> Settings:
    return _settings


def get_repository() -> LeagueRepository:
    """Provide the repository instance for FastAPI dependencies."""

    return _repository


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_context(
    authorization: Optional[str] = Header(None),
    repository: LeagueRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> RequestContext:
    """Resolve the viewer and the current season once per request."""

    token = _bearer_token(authorization)
    viewer_id = repository.get_session_user_id(token) if token else None
    return RequestContext(
        repository=repository,
        viewer_id=viewer_id,
        season=repository.get_latest_season(),
        settings=settings,
        audit=AuditLog(repository),
    )


# Error handlers ----------------------------------------------------------
@app.exception_handler(DashboardError)
async def _dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request body."})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Something went wrong."},
    )


# Request and response bodies ---------------------------------------------
class ActionResponse(BaseModel):
    status: bool
    message: str


class SlotUpdate(BaseModel):
    slot_id: int
    user_id: str = Field(..., min_length=1)


class RosterUpdateRequest(BaseModel):
    updates: List[SlotUpdate] = []


class EvaluationItem(BaseModel):
    player_id: str
    division: str


class EvaluationRequest(BaseModel):
    evaluations: List[EvaluationItem] = []


class CommissionerItem(BaseModel):
    division_id: int
    commissioner_1: Optional[str] = None
    commissioner_2: Optional[str] = None


class CommissionerRequest(BaseModel):
    season_id: int
    assignments: List[CommissionerItem] = []


class TeamItem(BaseModel):
    captain_id: Optional[str] = None
    name: str = ""


class TeamsRequest(BaseModel):
    division_id: int
    teams: List[TeamItem] = []


class DraftPickItem(BaseModel):
    team_id: int
    user_id: Optional[str] = None
    round: int = Field(..., ge=1)


class DraftRequest(BaseModel):
    division_id: int
    picks: List[DraftPickItem] = []


class WaitlistApprovalRequest(BaseModel):
    approved: bool


class PlayerUpdate(BaseModel):
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


class PictureRequest(BaseModel):
    filename: str


class MembershipUpdate(BaseModel):
    seasons_list: str
    notification_list: str


def _result_to_response(result: ActionResult) -> ActionResponse:
    return ActionResponse(status=result.status, message=result.message)


def _pdf_response(sheet: tryout_sheets.RenderedSheet) -> Response:
    return Response(
        content=sheet.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{sheet.filename}"',
            "Cache-Control": "no-store",
        },
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


# Tryout sheets -----------------------------------------------------------
@app.get("/dashboard/edit-week-1/tryout-sheets")
def week1_tryout_sheets(ctx: RequestContext = Depends(get_context)) -> Response:
    return _pdf_response(tryout_sheets.build_week1_sheets(ctx))


@app.get("/dashboard/edit-week-2/tryout-sheets")
def week2_tryout_sheets(ctx: RequestContext = Depends(get_context)) -> Response:
    return _pdf_response(tryout_sheets.build_week2_sheets(ctx))


# Rosters -----------------------------------------------------------------
@app.get("/dashboard/edit-week-1")
def week1_edit_data(ctx: RequestContext = Depends(get_context)):
    return handlers.load_week1_edit_data(ctx)


@app.post("/dashboard/edit-week-1", response_model=ActionResponse)
def update_week1(payload: RosterUpdateRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    updates = [handlers.SlotAssignment(item.slot_id, item.user_id) for item in payload.updates]
    return _result_to_response(handlers.update_week1_rosters(ctx, updates))


@app.get("/dashboard/edit-week-2")
def week2_edit_data(ctx: RequestContext = Depends(get_context)):
    return handlers.load_week2_edit_data(ctx)


@app.post("/dashboard/edit-week-2", response_model=ActionResponse)
def update_week2(payload: RosterUpdateRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    updates = [handlers.SlotAssignment(item.slot_id, item.user_id) for item in payload.updates]
    return _result_to_response(handlers.update_week2_rosters(ctx, updates))


# Evaluations and commissioners -------------------------------------------
@app.get("/dashboard/evaluate-players")
def evaluation_page(ctx: RequestContext = Depends(get_context)):
    return handlers.load_evaluation_page(ctx)


@app.post("/dashboard/evaluate-players", response_model=ActionResponse)
def save_evaluations(payload: EvaluationRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    entries = [handlers.DivisionEvaluation(item.player_id, item.division) for item in payload.evaluations]
    return _result_to_response(handlers.save_evaluations(ctx, entries))


@app.get("/dashboard/select-commissioners/{season_id}")
def commissioners(season_id: int, ctx: RequestContext = Depends(get_context)):
    return handlers.load_commissioners(ctx, season_id)


@app.post("/dashboard/select-commissioners", response_model=ActionResponse)
def save_commissioners(payload: CommissionerRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    assignments = [
        handlers.CommissionerAssignment(
            division_id=item.division_id,
            commissioner_1=item.commissioner_1,
            commissioner_2=item.commissioner_2,
        )
        for item in payload.assignments
    ]
    return _result_to_response(handlers.save_commissioners(ctx, payload.season_id, assignments))


# Teams and draft ---------------------------------------------------------
@app.post("/dashboard/select-captains", response_model=ActionResponse)
def select_captains(payload: TeamsRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    teams = [handlers.TeamEntry(item.captain_id, item.name) for item in payload.teams]
    return _result_to_response(handlers.create_teams(ctx, payload.division_id, teams))


@app.post("/dashboard/draft-division", response_model=ActionResponse)
def draft_division(payload: DraftRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    picks = [handlers.DraftPick(item.team_id, item.user_id, item.round) for item in payload.picks]
    return _result_to_response(handlers.submit_draft(ctx, payload.division_id, picks))


# Waitlist ----------------------------------------------------------------
@app.get("/dashboard/view-waitlist")
def view_waitlist(ctx: RequestContext = Depends(get_context)):
    return handlers.load_waitlist(ctx)


@app.post("/dashboard/view-waitlist/{waitlist_id}", response_model=ActionResponse)
def approve_waitlist_entry(
    waitlist_id: int,
    payload: WaitlistApprovalRequest,
    ctx: RequestContext = Depends(get_context),
) -> ActionResponse:
    return _result_to_response(handlers.set_waitlist_approval(ctx, waitlist_id, payload.approved))


@app.post("/dashboard/waitlist", response_model=ActionResponse)
def express_interest(ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    return _result_to_response(handlers.express_waitlist_interest(ctx))


# Signups -----------------------------------------------------------------
@app.get("/dashboard/admin-view-signups")
def admin_signups(ctx: RequestContext = Depends(get_context)):
    return handlers.load_admin_signups(ctx)


@app.delete("/dashboard/admin-view-signups/{signup_id}", response_model=ActionResponse)
def delete_signup(signup_id: int, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    return _result_to_response(handlers.delete_signup(ctx, signup_id))


@app.get("/dashboard/view-signups")
def signup_groups(ctx: RequestContext = Depends(get_context)):
    return handlers.load_signup_groups(ctx)


# Players -----------------------------------------------------------------
@app.patch("/dashboard/edit-player/{user_id}", response_model=ActionResponse)
def edit_player(user_id: str, payload: PlayerUpdate, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    changes = handlers.PlayerChanges(
        first_name=payload.first_name,
        last_name=payload.last_name,
        preferred_name=payload.preferred_name,
        email=payload.email,
        phone=payload.phone,
        experience=payload.experience,
        assessment=payload.assessment,
        height=payload.height,
        skill_setter=payload.skill_setter,
        skill_hitter=payload.skill_hitter,
        skill_passer=payload.skill_passer,
        skill_other=payload.skill_other,
        male=payload.male,
        captain_eligible=payload.captain_eligible,
    )
    return _result_to_response(handlers.edit_player(ctx, user_id, changes))


@app.get("/dashboard/add-pictures")
def players_needing_pictures(ctx: RequestContext = Depends(get_context)):
    return handlers.load_players_needing_pictures(ctx)


@app.post("/dashboard/add-pictures/{user_id}", response_model=ActionResponse)
def finalize_picture(user_id: str, payload: PictureRequest, ctx: RequestContext = Depends(get_context)) -> ActionResponse:
    return _result_to_response(handlers.finalize_picture_upload(ctx, user_id, payload.filename))


# Reports -----------------------------------------------------------------
@app.get("/dashboard/attrition")
def attrition(ctx: RequestContext = Depends(get_context)):
    return reports.load_attrition_report(ctx)


@app.get("/dashboard/google-membership")
def google_membership(
    q: Optional[str] = None,
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    ctx: RequestContext = Depends(get_context),
):
    return reports.load_membership_page(ctx, query=q, page=page, limit=limit)


@app.patch("/dashboard/google-membership/{user_id}", response_model=ActionResponse)
def update_membership(
    user_id: str,
    payload: MembershipUpdate,
    ctx: RequestContext = Depends(get_context),
) -> ActionResponse:
    return _result_to_response(
        reports.update_membership(
            ctx,
            user_id,
            seasons_list=payload.seasons_list,
            notification_list=payload.notification_list,
        )
    )


__all__ = ["app", "get_context", "get_repository", "get_settings"]
