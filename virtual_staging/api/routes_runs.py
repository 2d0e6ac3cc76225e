from fastapi import APIRouter, Depends, HTTPException
from virtual_staging.core.engine import WorkflowDriver
from virtual_staging.core.errors import InputError, RunNotFoundError
from virtual_staging.core.factory import get_driver
from virtual_staging.core.workflow import StageSelection
from virtual_staging.schemas.runs import RunCreateRequest, RunResponse
from virtual_staging.tasks.runs import start_staging_run

router = APIRouter(prefix="/runs")

@router.post("", response_model=RunResponse, status_code=201)
def create_run(req: RunCreateRequest, driver: WorkflowDriver = Depends(get_driver)):
    source = req.image_url or f"data:image/*;base64,{req.image_base64}"
    selection = StageSelection(**req.stage_selection.model_dump()) if req.stage_selection else None
    try:
        snap = driver.create_run(source, req.room_category, req.style_profile, selection)
    except InputError as e:
        raise HTTPException(status_code=400, detail={"error_code": e.error_code, "message": e.message})

    start_staging_run.delay(snap.id)

    return RunResponse.from_snapshot(snap)

@router.get("/{run_id}", response_model=RunResponse)
def get_run(run_id: str, driver: WorkflowDriver = Depends(get_driver)):
    try:
        snap = driver.get_run_status(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunResponse.from_snapshot(snap)
