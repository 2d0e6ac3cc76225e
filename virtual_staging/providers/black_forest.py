from __future__ import annotations
import base64
import logging
from typing import Any, Callable
import httpx
from virtual_staging.core.errors import ProviderError
from virtual_staging.core.workflow import ImageRef, StageConfig, StagingPlan
from virtual_staging.providers.base import (
    DispatchOutcome,
    JobFailed,
    JobHandle,
    JobPending,
    JobStatus,
    JobSucceeded,
    StageExecutor,
)
from virtual_staging.providers.geometry import normalize_dimensions

log = logging.getLogger(__name__)

READY_STATUSES = {"ready", "success", "succeeded", "completed"}
FAILED_STATUSES = {"error", "failed", "request moderated", "content moderated"}
# BFL answers "Task not found" for a little while after submission.
PENDING_STATUSES = {"pending", "processing", "queued", "task not found"}


def extract_sample(result: Any) -> str | None:
    """Result image URL from a ``result`` payload (``{"sample": str | {"url": str}}``)."""
    if not isinstance(result, dict):
        return None
    sample = result.get("sample")
    if isinstance(sample, dict):
        sample = sample.get("url")
    return sample if isinstance(sample, str) and sample else None


def map_status(status: str | None, result: Any = None, progress: Any = None) -> JobStatus:
    key = (status or "").strip().lower()
    if key in READY_STATUSES:
        sample = extract_sample(result)
        if not sample:
            return JobFailed(reason=f"Provider reported {status} without a result image")
        return JobSucceeded(result_ref=sample)
    if key in FAILED_STATUSES:
        return JobFailed(reason=f"Provider reported status {status}")
    if key in PENDING_STATUSES or not key:
        return JobPending(progress=progress if isinstance(progress, (int, float)) else None)
    log.warning("Unknown provider status %r, treating as pending", status)
    return JobPending()


class BlackForestProvider(StageExecutor):
    """FLUX Kontext image editing through the Black Forest Labs API."""
    name = "black-forest"
    supports_webhooks = True

    def __init__(
        self,
        api_key: str,
        image_loader: Callable[[ImageRef], bytes],
        *,
        api_base: str = "https://api.bfl.ai",
        model: str = "flux-kontext-pro",
        timeout: float = 60.0,
        webhook_secret: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.image_loader = image_loader
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.webhook_secret = webhook_secret
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        if not self.api_key:
            raise ProviderError("Black Forest Labs API key is not configured")
        return {
            "x-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            r = self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"{method} {url} failed: {e}") from e
        if r.status_code == 404 and method == "GET":
            return {"status": "Task not found"}
        if r.is_error:
            raise ProviderError(f"{method} {url} returned {r.status_code}: {r.text[:200]}")
        try:
            body = r.json()
        except ValueError as e:
            raise ProviderError(f"{method} {url} returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise ProviderError(f"{method} {url} returned an unexpected body")
        return body

    def build_payload(self, image: ImageRef, prompt: str, callback_url: str | None = None) -> dict:
        size = normalize_dimensions(image.width, image.height)
        payload = {
            "prompt": prompt,
            "input_image": base64.b64encode(self.image_loader(image)).decode("ascii"),
            "width": size.width,
            "height": size.height,
            "aspect_ratio": size.aspect_ratio,
            "prompt_upsampling": False,
            "output_format": "jpeg",
            "safety_tolerance": 2,
        }
        if callback_url:
            payload["webhook_url"] = callback_url
            if self.webhook_secret:
                payload["webhook_secret"] = self.webhook_secret
        return payload

    def dispatch(
        self,
        image: ImageRef,
        stage: StageConfig,
        instruction: str | None = None,
        callback_url: str | None = None,
        plan: StagingPlan | None = None,
    ) -> DispatchOutcome:
        payload = self.build_payload(image, instruction or stage.instruction, callback_url)
        body = self._request("POST", f"{self.api_base}/v1/{self.model}", json=payload)
        job_id = body.get("id")
        if not job_id:
            raise ProviderError("Provider response did not include a job id")
        return JobHandle(handle=str(job_id), polling_url=body.get("polling_url"))

    def poll_status(self, handle: str) -> JobStatus:
        body = self._request("GET", f"{self.api_base}/v1/get_result", params={"id": handle})
        return map_status(body.get("status"), body.get("result"), body.get("progress"))
