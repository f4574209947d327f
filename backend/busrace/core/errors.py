"""Error taxonomy shared by the pipeline and the HTTP layer."""


class BusRaceError(Exception):
    """Base error; ``status_code`` is the HTTP status the API answers with."""

    status_code = 500


class ConfigurationError(BusRaceError):
    status_code = 500


class OperatorRequiredError(BusRaceError):
    status_code = 400

    def __init__(self, message: str = "Operator is required.") -> None:
        super().__init__(message)


class UpstreamError(BusRaceError):
    status_code = 500

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitError(BusRaceError):
    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Upstream rate limit reached, retry in {retry_after}s.")
        self.retry_after = retry_after


class StopCatalogError(BusRaceError):
    status_code = 500
