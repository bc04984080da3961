"""Custom exceptions for the integrity monitor package."""


class FIMError(Exception):
    """Base exception for all integrity monitor errors."""
    pass


class RootNotFoundError(FIMError):
    """Monitored root does not exist or is not a directory."""
    pass


class BaselineError(FIMError):
    """Error related to the persisted baseline."""
    pass


class BaselineNotFoundError(BaselineError):
    """No baseline has been created for the root yet."""
    pass


class BaselineInUseError(BaselineError):
    """Baseline file is held by a running monitor session."""
    pass


class SessionError(FIMError):
    """Error related to a monitoring session."""
    pass


class WatchClosedError(SessionError):
    """The underlying watch resource went away (e.g. the root was removed)."""
    pass
