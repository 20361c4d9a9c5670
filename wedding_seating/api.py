import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query

from wedding_seating.database import init_db
from wedding_seating.exceptions import (
    CapacityConfirmationRequired,
    GroupNotFoundError,
    GuestNotFoundError,
    InvalidSettingsError,
    NothingToPromoteError,
    RunInProgressError,
    SeatingError,
    SettingsMissingError,
    SimulationDisabledError,
    TableNotFoundError,
    WeddingNotFoundError,
)
from wedding_seating.models import (
    AssignmentOut,
    AssignRequest,
    AssignResult,
    PromoteResult,
    RsvpChangeResult,
    RunRequest,
    RunResult,
    SettingsOut,
    SettingsUpdate,
    TableSummary,
)
from wedding_seating.orchestrator import SeatingOrchestrator
from wedding_seating.settings import get_settings
from wedding_seating.solver.domain import AssignmentType

logging.basicConfig(level=get_settings().log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Wedding Seating API", lifespan=lifespan)

# Błędy krytyczne -> kody HTTP
STATUS_CODES = {
    WeddingNotFoundError: 404,
    GroupNotFoundError: 404,
    TableNotFoundError: 404,
    GuestNotFoundError: 404,
    SettingsMissingError: 404,
    RunInProgressError: 409,
    CapacityConfirmationRequired: 409,
    SimulationDisabledError: 400,
    NothingToPromoteError: 400,
    InvalidSettingsError: 400,
}


@lru_cache
def get_orchestrator() -> SeatingOrchestrator:
    return SeatingOrchestrator()


def to_http(e: SeatingError) -> HTTPException:
    status = STATUS_CODES.get(type(e), 400)
    if status >= 409:
        logger.warning(f"{type(e).__name__}: {e}")
    return HTTPException(status_code=status, detail=str(e))


@app.get("/")
def health_check():
    return {"status": "ok", "message": "Wedding Seating API is running"}


@app.post("/weddings/{wedding_id}/seating/run", response_model=RunResult)
def run_endpoint(
    wedding_id: int, request: RunRequest, orchestrator: SeatingOrchestrator = Depends(get_orchestrator)
):
    try:
        if request.group_id is not None:
            return orchestrator.run_incremental(wedding_id, group_id=request.group_id, assignment_type=request.type)
        return orchestrator.run_full(wedding_id, request.type)
    except SeatingError as e:
        raise to_http(e)


@app.get("/weddings/{wedding_id}/seating/assignments", response_model=List[AssignmentOut])
def assignments_endpoint(
    wedding_id: int,
    type: AssignmentType = Query(AssignmentType.REAL),
    orchestrator: SeatingOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.list_assignments(wedding_id, type)
    except SeatingError as e:
        raise to_http(e)


@app.get("/weddings/{wedding_id}/seating/summary", response_model=List[TableSummary])
def summary_endpoint(
    wedding_id: int,
    type: AssignmentType = Query(AssignmentType.REAL),
    orchestrator: SeatingOrchestrator = Depends(get_orchestrator),
):
    try:
        return orchestrator.seating_summary(wedding_id, type)
    except SeatingError as e:
        raise to_http(e)


@app.post("/weddings/{wedding_id}/seating/promote", response_model=PromoteResult)
def promote_endpoint(wedding_id: int, orchestrator: SeatingOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.promote_simulation(wedding_id)
    except SeatingError as e:
        raise to_http(e)


@app.get("/weddings/{wedding_id}/seating/settings", response_model=SettingsOut)
def get_settings_endpoint(wedding_id: int, orchestrator: SeatingOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.get_settings(wedding_id)
    except SeatingError as e:
        raise to_http(e)


@app.put("/weddings/{wedding_id}/seating/settings", response_model=SettingsOut)
def update_settings_endpoint(
    wedding_id: int, update: SettingsUpdate, orchestrator: SeatingOrchestrator = Depends(get_orchestrator)
):
    try:
        return orchestrator.update_settings(wedding_id, update)
    except SeatingError as e:
        raise to_http(e)


@app.post("/weddings/{wedding_id}/guests/{guest_id}/rsvp-changed", response_model=RsvpChangeResult)
def rsvp_changed_endpoint(
    wedding_id: int, guest_id: int, orchestrator: SeatingOrchestrator = Depends(get_orchestrator)
):
    try:
        return orchestrator.handle_rsvp_change(wedding_id, guest_id)
    except SeatingError as e:
        raise to_http(e)


@app.post("/tables/{table_id}/assign", response_model=AssignResult)
def assign_endpoint(
    table_id: int, request: AssignRequest, orchestrator: SeatingOrchestrator = Depends(get_orchestrator)
):
    try:
        return orchestrator.assign_guests(
            table_id, request.guest_ids, request.action, request.confirm_over_capacity
        )
    except SeatingError as e:
        raise to_http(e)
