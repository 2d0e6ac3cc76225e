from __future__ import annotations
from functools import lru_cache
from virtual_staging.core.config import settings
from virtual_staging.core.engine import WorkflowDriver
from virtual_staging.db.repository import RunRepository
from virtual_staging.db.session import SessionLocal
from virtual_staging.providers.black_forest import BlackForestProvider
from virtual_staging.providers.instant_deco import InstantDecoProvider
from virtual_staging.providers.registry import ProviderRegistry
from virtual_staging.storage.images import LocalImageStore
from virtual_staging.validation.validator import StageValidator


def build_driver() -> WorkflowDriver:
    images = LocalImageStore(settings.images_dir, settings.images_public_base_url, timeout=settings.bfl_request_timeout)
    providers = [
        BlackForestProvider(
            api_key=settings.bfl_api_key or "",
            image_loader=images.load,
            api_base=settings.bfl_api_base,
            model=settings.bfl_model,
            timeout=settings.bfl_request_timeout,
            webhook_secret=settings.provider_webhook_secret,
        ),
        InstantDecoProvider(
            api_key=settings.instant_deco_api_key or "",
            api_base=settings.instant_deco_api_base,
            timeout=settings.bfl_request_timeout,
        ),
    ]
    return WorkflowDriver(
        runs=RunRepository(SessionLocal),
        providers=ProviderRegistry.from_routes(providers, settings.provider_routes, settings.default_provider),
        validator=StageValidator(load_image=images.load),
        images=images,
        callback_url=settings.provider_callback_url,
        poll_interval=settings.poll_interval_seconds,
        poll_max_attempts=settings.poll_max_attempts,
        stall_grace=settings.stall_grace_seconds,
    )


@lru_cache(maxsize=1)
def get_driver() -> WorkflowDriver:
    """Process-wide driver; it holds no run state, only clients and configuration."""
    return build_driver()
