class GiftServiceError(Exception):
    """Base class for errors raised by the gift lifecycle services."""

class NotFoundError(GiftServiceError):
    pass

class InvalidTransitionError(GiftServiceError):
    pass

class SubmissionPendingError(GiftServiceError):
    """A photo/video submission for this gift is still waiting for review."""

class PermissionDeniedError(GiftServiceError):
    pass
