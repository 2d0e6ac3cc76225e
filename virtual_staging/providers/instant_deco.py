"""InstantDeco furnishing API.

InstantDeco takes a room type and a design name instead of a free-text
prompt, and reports results only through its webhook. Polling always answers
pending, so a lost webhook is caught by the driver's callback wait budget.
"""
from __future__ import annotations
import logging
from typing import Any
import httpx
from virtual_staging.core.errors import ProviderError
from virtual_staging.core.workflow import (
    ImageRef,
    RoomCategory,
    StageConfig,
    StageKind,
    StagingPlan,
    StyleProfile,
)
from virtual_staging.providers.base import (
    DispatchOutcome,
    JobFailed,
    JobHandle,
    JobPending,
    JobStatus,
    JobSucceeded,
    StageExecutor,
)

log = logging.getLogger(__name__)

ROOM_TYPES = {
    RoomCategory.LIVING_ROOM: "living_room",
    RoomCategory.BEDROOM: "bedroom",
    RoomCategory.KITCHEN: "kitchen",
    RoomCategory.BATHROOM: "bathroom",
    RoomCategory.DINING_ROOM: "dining_room",
    RoomCategory.HOME_OFFICE: "home_office",
    RoomCategory.KIDS_ROOM: "kid_bedroom",
    RoomCategory.OUTDOOR: "terrace",
}

DESIGNS = {
    StyleProfile.STANDARD: "minimalist",
    StyleProfile.MODERN: "modern",
    StyleProfile.SCANDINAVIAN: "scandinavian",
    StyleProfile.INDUSTRIAL: "industrial",
    StyleProfile.MIDCENTURY: "midcentury",
    StyleProfile.LUXURY: "french",
    StyleProfile.COASTAL: "coastal",
    StyleProfile.FARMHOUSE: "rustic",
}

STRUCTURE = ("wall", "floor", "ceiling", "windowpane", "door")
WET_ROOM_FIXTURES = ("sink", "countertop", "toilet", "tub", "shower")

PENDING_STATUSES = {"starting", "queued", "processing", "pending"}


def transformation_for(room: RoomCategory) -> str:
    if room is RoomCategory.OUTDOOR:
        return "outdoor"
    if room in (RoomCategory.KITCHEN, RoomCategory.BATHROOM):
        return "redesign"
    return "furnish"


def block_elements(transformation: str, stage: StageConfig) -> list[str]:
    elements = list(STRUCTURE)
    if transformation == "redesign":
        elements.extend(WET_ROOM_FIXTURES)
    # Curtains hang over the window frame.
    if stage.kind is StageKind.WINDOW_TREATMENT:
        elements.remove("windowpane")
    return elements


def read_webhook(body: dict[str, Any]) -> tuple[str | None, JobStatus]:
    """``(request_id, status)`` from an InstantDeco webhook body."""
    handle = body.get("request_id")
    status = str(body.get("status") or "").strip().lower()
    if status == "succeeded":
        output = body.get("output")
        urls = output if isinstance(output, list) else [output]
        urls = [u for u in urls if isinstance(u, str) and u]
        if not urls:
            return handle, JobFailed(reason="InstantDeco reported success without an output image")
        return handle, JobSucceeded(result_ref=urls[0])
    if status in PENDING_STATUSES:
        return handle, JobPending()
    return handle, JobFailed(reason=f"Processing failed with status: {body.get('status')}")


class InstantDecoProvider(StageExecutor):
    name = "instant-deco"
    supports_webhooks = True
    requires_webhooks = True

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = "https://app.instantdeco.ai/api/1.1/wf/request_v2",
        timeout: float = 60.0,
        high_details_resolution: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.api_base = api_base
        self.high_details_resolution = high_details_resolution
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        if not self.api_key:
            raise ProviderError("InstantDeco API key is not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, image: ImageRef, stage: StageConfig, plan: StagingPlan, callback_url: str) -> dict:
        transformation = transformation_for(plan.room_category)
        return {
            "design": DESIGNS[plan.style_profile],
            "room_type": ROOM_TYPES[plan.room_category],
            "transformation_type": transformation,
            "block_element": ",".join(block_elements(transformation, stage)),
            "high_details_resolution": self.high_details_resolution,
            "img_url": image.url,
            "webhook_url": callback_url,
            "num_images": 1,
        }

    def dispatch(
        self,
        image: ImageRef,
        stage: StageConfig,
        instruction: str | None = None,
        callback_url: str | None = None,
        plan: StagingPlan | None = None,
    ) -> DispatchOutcome:
        if not callback_url:
            raise ProviderError("InstantDeco requires a webhook URL")
        if plan is None:
            raise ProviderError("InstantDeco needs the run's room and style")
        if not image.url.startswith(("http://", "https://")):
            raise ProviderError(f"InstantDeco cannot fetch {image.url}")

        payload = self.build_payload(image, stage, plan, callback_url)
        try:
            r = self._client.post(self.api_base, headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"POST {self.api_base} failed: {e}") from e
        if r.is_error:
            raise ProviderError(f"InstantDeco returned {r.status_code}: {r.text[:200]}")
        try:
            body = r.json()
        except ValueError as e:
            raise ProviderError("InstantDeco returned a non-JSON body") from e

        response = body.get("response") if isinstance(body, dict) else None
        request_id = response.get("request_id") if isinstance(response, dict) else None
        if not request_id:
            raise ProviderError("InstantDeco response did not include a request id")
        log.debug("InstantDeco accepted request %s: %s", request_id, response.get("message"))
        return JobHandle(handle=str(request_id))

    def poll_status(self, handle: str) -> JobStatus:
        return JobPending()
