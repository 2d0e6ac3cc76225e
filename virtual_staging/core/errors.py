class StagingError(Exception):
    """Base error for the staging engine."""
    error_code = "STAGING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(StagingError):
    """Request rejected before a run is created."""
    error_code = "INVALID_INPUT"


class UnknownProviderError(InputError):
    error_code = "UNSUPPORTED_COMBINATION"


class RunNotFoundError(StagingError):
    error_code = "RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        super().__init__(f"Staging run {run_id} not found")
        self.run_id = run_id


class ProviderError(StagingError):
    """Transport failure talking to the image-generation provider."""
    error_code = "PROVIDER_ERROR"


class ImageStoreError(StagingError):
    error_code = "IMAGE_STORE_ERROR"


class ImageDecodeError(StagingError):
    error_code = "IMAGE_DECODE_ERROR"


class PlanInvariantError(StagingError):
    error_code = "PLAN_INVARIANT"
