"""
Custom exception hierarchy for the call navigator.

All application exceptions inherit from CallNavigatorError.

The navigation engine itself never raises for bad input during a live call;
these exceptions cover loading, configuration and the API surface.
"""


class CallNavigatorError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CallNavigatorError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# Flow Graph Errors
# =============================================================================


class FlowGraphError(CallNavigatorError):
    """Flow graph could not be built or is unusable."""

    pass


class NodeNotFoundError(FlowGraphError):
    """Node does not exist in the flow graph."""

    pass


# =============================================================================
# Call Errors
# =============================================================================


class CallError(CallNavigatorError):
    """Call session related error."""

    pass


class CallNotFoundError(CallError):
    """Call session does not exist."""

    pass


class ValidationError(CallNavigatorError):
    """Input validation failed."""

    pass
