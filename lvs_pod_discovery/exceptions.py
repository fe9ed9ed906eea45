"""Custom exception hierarchy for the LVS pod discovery daemon."""


class LvsSyncError(Exception):
    """Base exception for all daemon errors."""


class StartupError(LvsSyncError):
    """The environment is unusable; the process cannot start."""


class ConfigError(StartupError):
    """Invalid or missing configuration."""


class LvsConfigError(StartupError):
    """The base LVS configuration file is unreadable or malformed."""

    def __init__(self, message: str, line_number: int | None = None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class MembershipClientError(StartupError):
    """The Kubernetes client could not be constructed."""


class NoMembersError(StartupError):
    """No pods match the monitored label selector."""


class MembershipQueryError(LvsSyncError):
    """A single call to the Kubernetes API failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(LvsSyncError):
    """Writing the LVS configuration file failed. The previous file is left intact."""


class MalformedEventError(LvsSyncError):
    """A watch event carried an object that is not a pod."""
