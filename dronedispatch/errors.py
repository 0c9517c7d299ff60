"""Error taxonomy of the dispatch core.

None of these errors is fatal to the process. ``InvalidInput`` rejects a
single call, ``NotFound`` is surfaced to the caller, and ``InvalidTransition``
is logged and ignored when it comes from a late or duplicate clock effect.
"""


class DispatchError(Exception):
    """Base class for every error raised by the dispatch core."""


class InvalidInput(DispatchError, ValueError):
    """Raised when submitted data (coordinates, supplies) is unusable."""


class NotFound(DispatchError, LookupError):
    """Raised when an agent or request id is unknown."""


class InvalidTransition(DispatchError):
    """Raised when a status change is not allowed from the current status."""
