class TeacherAidError(Exception):
    """Base class for errors raised by the session orchestrator."""


class SessionError(TeacherAidError):
    """Raised when a mutation targets a subject that does not exist or would break session invariants."""


class AdaptationError(TeacherAidError):
    """Raised when the adaptation service is unreachable or its response cannot be parsed."""


class StrategyError(TeacherAidError):
    """Raised when an option selection does not match the pending option set."""


class ImportRejected(TeacherAidError):
    """Raised when an imported backup does not look like a session document."""


class AudioDecodeError(TeacherAidError):
    """Raised when a synthesized payload is not valid 16-bit PCM."""
