"""
Live tracking client errors.

Only WalkNotFound reaches the view; the rest are caught and logged by the
component that raised them.
"""


class TrackingError(Exception):
    """Base live tracking exception."""


class WalkNotFound(TrackingError):
    """No walk session resolves for the requested identifier."""

    def __init__(self, walk_id):
        self.walk_id = walk_id
        super().__init__(f"Walk {walk_id} not found")


class TransportError(TrackingError):
    """The realtime channel could not be opened or broke while open."""


class MapInitializationError(TrackingError):
    """The map renderer failed to build or update the map."""
