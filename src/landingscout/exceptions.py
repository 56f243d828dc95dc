"""Domain errors surfaced to control-plane callers."""


class LandingScoutError(Exception):
    """Base class for all LandingScout errors."""


class NotFoundError(LandingScoutError):
    """Raised when a requested record does not exist."""


class ScoutNotFoundError(NotFoundError):
    def __init__(self, scout_id: str):
        self.scout_id = scout_id
        super().__init__(f'Scout with ID "{scout_id}" not found')


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f'Session with ID "{session_id}" not found')


class PageResultNotFoundError(NotFoundError):
    def __init__(self, page_result_id: str, reason: str = "not found"):
        self.page_result_id = page_result_id
        super().__init__(f'Page result "{page_result_id}" {reason}')


class NoPageResultsError(NotFoundError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"No page results found for session {session_id}")


class SessionNotCancellableError(LandingScoutError):
    """Raised when cancelling a session that already reached a terminal state."""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(
            f"Session {session_id} is {status}; only PENDING or RUNNING sessions can be cancelled"
        )


class InvalidScheduleError(LandingScoutError):
    """Raised when a schedule string does not parse to a recurring trigger."""

    def __init__(self, schedule: str, reason: str):
        self.schedule = schedule
        super().__init__(f"Invalid schedule format {schedule!r}: {reason}")


class UnknownPageTypeError(LandingScoutError):
    """Raised when no processor is registered for a page type tag."""

    def __init__(self, page_type: str):
        self.page_type = page_type
        super().__init__(f"No processor found for page type: {page_type}")
