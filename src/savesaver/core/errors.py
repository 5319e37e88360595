"""Errors raised by the savesaver core."""


class InvalidInputError(ValueError):
    """Raised when user supplied configuration is rejected before any work starts."""


class AlreadyRunningError(RuntimeError):
    """Raised when an operation is started while another one is still active."""

    def __init__(self, state: str) -> None:
        """Initialize error."""
        super().__init__(f"An operation is already running ({state})")
        self.state = state
