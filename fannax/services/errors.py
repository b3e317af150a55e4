"""
Error types raised by the prediction pipeline services.

Route handlers map these onto HTTP status codes; batch jobs count them.
"""


class PipelineError(Exception):
    """Base class for prediction pipeline errors."""


class NotFoundError(PipelineError):
    """A referenced match, prediction, user or cursor does not exist."""


class InvalidStateError(PipelineError):
    """The action is not permitted in the entity's current lifecycle state."""


class ConflictError(PipelineError):
    """A uniqueness rule would be violated."""


class InvalidInputError(PipelineError, ValueError):
    """Input failed schema or range validation."""


class UpstreamUnavailableError(PipelineError):
    """The fixture provider could not be reached or kept failing after retries."""
