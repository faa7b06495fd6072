class StreamScribeError(Exception):
    """Base class for errors surfaced to clients as a failure reason."""


class AuthenticationError(StreamScribeError):
    pass


class NotFoundError(StreamScribeError):
    pass


class InvalidTransitionError(StreamScribeError):
    pass


class PersistenceError(StreamScribeError):
    pass


class TranscriptionError(StreamScribeError):
    pass


class SummarizationError(StreamScribeError):
    pass
