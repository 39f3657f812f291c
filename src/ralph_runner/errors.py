"""Exceptions raised by Ralph Runner."""


class RalphError(Exception):
    """Base class for errors that end a Ralph command with an exit code."""

    exit_code = 1


class PreconditionError(RalphError):
    """Raised when a required file or executable is missing."""

    pass


class UsageError(RalphError):
    """Raised when a command is missing a required argument."""

    def __init__(self, message: str, usage: str = "") -> None:
        super().__init__(message)
        self.usage = usage
