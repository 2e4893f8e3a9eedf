"""
Exception hierarchy for marksync.

InputError covers malformed records and unknown strategies or scopes. It is
raised before anything is mutated. CollaboratorUnavailable wraps failures of
the snapshot store or backup storage.
"""


class MarksyncError(Exception):
    """Base class for all marksync errors."""
    pass


class InputError(MarksyncError, ValueError):
    """Malformed input: bad record, unknown strategy, unknown scope."""
    pass


class CollaboratorUnavailable(MarksyncError):
    """A snapshot store or storage backend could not be reached."""

    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        detail = f": {message}" if message else ""
        super().__init__(f"{collaborator} unavailable{detail}")
