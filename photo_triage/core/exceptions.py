"""Exceptions raised by the cleanup engine."""


class CleanupError(Exception):
    """Base class for cleanup engine errors."""

    pass


class AnalysisCancelled(CleanupError):
    """Raised inside an analyzer when its job has been cancelled."""

    pass


class AnalysisFailed(CleanupError):
    """Raised when an analyzer run ends with an error."""

    def __init__(self, collection_id: str, cause: BaseException):
        super().__init__(f"Analysis of {collection_id} failed: {cause}")
        self.collection_id = collection_id
        self.cause = cause
