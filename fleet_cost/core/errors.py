"""
Error types raised by the cost estimation engine.
"""


class FleetCostError(Exception):
    """Base class for all cost estimation failures."""


class ValidationError(FleetCostError):
    """Raised when caller input (e.g. a period selector) is malformed."""


class UpstreamUnavailable(FleetCostError):
    """Raised when an entire metric source could not be fetched.

    No partial estimate is produced: omitting a whole source would
    under-report cost for every app.
    """
    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class AppNotFoundError(FleetCostError):
    """Raised when no deployed app matches the requested name."""
