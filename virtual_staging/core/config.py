from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_name: str = "virtual-staging-engine"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    database_url: str
    redis_url: str

    images_dir: str = "/data/images"
    images_public_base_url: str = "http://localhost:8080/images"

    bfl_api_key: str | None = None
    bfl_api_base: str = "https://api.bfl.ai"
    bfl_model: str = "flux-kontext-pro"
    bfl_request_timeout: float = 60.0

    instant_deco_api_key: str | None = None
    instant_deco_api_base: str = "https://app.instantdeco.ai/api/1.1/wf/request_v2"

    # Capability table: "room:style" -> provider, "*" matches anything, e.g. {"outdoor:*": "instant-deco"}.
    default_provider: str = "black-forest"
    provider_routes: dict[str, str] = {}

    # When set (and the provider supports it) runs advance from inbound webhooks.
    # "{provider}" in the URL is replaced by the run's provider name.
    provider_callback_url: str | None = None
    provider_webhook_secret: str | None = None

    poll_interval_seconds: float = 10.0
    poll_max_attempts: int = 30
    # Slack before a run nothing is moving is picked up again by the sweep.
    stall_grace_seconds: float = 120.0
    sweep_interval_seconds: float = 60.0

settings = Settings()
