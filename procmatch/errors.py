"""Error taxonomy for the matching pipeline.

Flows raise these typed errors; the HTTP dispatcher is the single place that
turns them into transport responses.
"""


class ProcmatchError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ProcmatchError):
    """A required setting (e.g. the gateway credential) is missing. Never retried."""


class GatewayError(ProcmatchError):
    """Non-success response (or transport failure) from the LLM gateway."""

    def __init__(self, status_code: int | None, body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"LLM gateway request failed: {body}"
        else:
            message = f"LLM gateway error ({status_code}): {body}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """5xx, 429 and transport failures may be retried by the caller; other 4xx are fatal."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class ExtractionError(ProcmatchError):
    """Assistant response could not be decoded into the required structure."""

    def __init__(self, message: str, raw_response: str = ""):
        self.raw_response = raw_response
        super().__init__(message)


class MatchingError(ProcmatchError):
    """Internal supplier scoring failed; the whole matching call fails."""


class DispatchError(ProcmatchError):
    """Client-input problem detected by the dispatcher (4xx class)."""

    status_code = 400


class MissingFlowNameError(DispatchError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Flow name is missing")


class UnknownFlowError(DispatchError):
    status_code = 404

    def __init__(self, flow_name: str):
        self.flow_name = flow_name
        super().__init__(f"Flow not found: {flow_name}")


class InvalidRequestError(DispatchError):
    status_code = 400
