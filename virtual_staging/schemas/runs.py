from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from virtual_staging.core.workflow import RoomCategory, RunSnapshot, RunStatus, StageKind, StyleProfile


class StageSelectionIn(BaseModel):
    primary_furniture: bool = True
    complementary: bool = True
    window_treatment: bool = True
    wall_decor: bool = True


class RunCreateRequest(BaseModel):
    image_url: Optional[str] = Field(None, examples=["https://example.com/empty-living-room.jpg"])
    image_base64: Optional[str] = None
    room_category: RoomCategory = Field(..., examples=["living_room"])
    style_profile: StyleProfile = Field(..., examples=["modern"])
    stage_selection: Optional[StageSelectionIn] = None

    @model_validator(mode="after")
    def _one_image(self):
        if not self.image_url and not self.image_base64:
            raise ValueError("Either image_url or image_base64 is required")
        if self.image_url and self.image_base64:
            raise ValueError("Provide only one of image_url or image_base64")
        return self


class ImageOut(BaseModel):
    url: str
    width: int
    height: int


class StageResultOut(BaseModel):
    stage_index: int
    stage_kind: StageKind
    succeeded: bool
    items_added: int
    validation_passed: bool
    validation_violations: List[str] = []
    retry_count: int
    result_image: Optional[ImageOut] = None


class RunResponse(BaseModel):
    id: str
    status: RunStatus
    room_category: RoomCategory
    style_profile: StyleProfile
    current_stage_index: int
    current_stage_kind: Optional[StageKind] = None
    stage_count: int
    stage_results: List[StageResultOut] = []
    final_image: Optional[ImageOut] = None
    error_message: Optional[str] = None

    @staticmethod
    def from_snapshot(snap: RunSnapshot) -> "RunResponse":
        return RunResponse(
            id=snap.id,
            status=snap.status,
            room_category=snap.room_category,
            style_profile=snap.style_profile,
            current_stage_index=snap.current_stage_index,
            current_stage_kind=snap.current_stage_kind,
            stage_count=snap.stage_count,
            stage_results=[
                StageResultOut(
                    stage_index=r.stage_index,
                    stage_kind=r.stage_kind,
                    succeeded=r.succeeded,
                    items_added=r.items_added,
                    validation_passed=r.validation_passed,
                    validation_violations=[t.value for t in r.validation_violations],
                    retry_count=r.retry_count,
                    result_image=ImageOut(**r.result_image.to_dict()) if r.result_image else None,
                )
                for r in snap.stage_results
            ],
            final_image=ImageOut(**snap.final_image.to_dict()) if snap.final_image else None,
            error_message=snap.error_message,
        )


class CallbackAccepted(BaseModel):
    accepted: bool = True
    job_handle: str
    kind: str
