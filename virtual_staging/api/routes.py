from fastapi import APIRouter
from virtual_staging.api.routes_health import router as health_router
from virtual_staging.api.routes_runs import router as runs_router
from virtual_staging.api.routes_webhooks import router as webhooks_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(runs_router, tags=["runs"])
router.include_router(webhooks_router, tags=["webhooks"])
