"""Error taxonomy for upstream sources and the scorer.

Adapters raise these; the pipeline captures them per query or per
account and turns them into tagged fetch results. None of them end a
run on their own.

    UpstreamUnavailable: network failure or timeout
    UpstreamError: non-success HTTP status (body kept for diagnostics)
    MalformedResponse: payload could not be parsed
    ConfigurationMissing: credential not set
"""

# Response bodies carried on UpstreamError are cut to this length
MAX_ERROR_BODY_CHARS = 200


class SignalError(Exception):
    """Base class for pipeline errors."""


class UpstreamUnavailable(SignalError):
    """Raised when an upstream cannot be reached (connection error or timeout)."""


class UpstreamError(SignalError):
    """Raised when an upstream answers with a non-success status.

    Attributes:
        status: HTTP status code
        body: First 200 characters of the response body
    """

    def __init__(self, status: int, body: str = "", source: str = "upstream"):
        self.status = status
        self.body = (body or "")[:MAX_ERROR_BODY_CHARS]
        self.source = source
        super().__init__(f"{source} HTTP {status}: {self.body}")


class MalformedResponse(SignalError):
    """Raised when an upstream payload cannot be parsed."""


class ConfigurationMissing(SignalError):
    """Raised when a required credential is not configured."""

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(f"{variable} environment variable is not set")
