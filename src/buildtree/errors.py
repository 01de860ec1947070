"""Error kinds shared across Build Tree."""


class BuildError(Exception):
    """A build failure that is reported by its message alone.

    Raised for expected failures (bad configuration, mismatched package
    versions, failed external commands) where a traceback adds nothing.
    """

    def __init__(self, message: str = "An unexpected build error occurred.") -> None:
        super().__init__(message)


class BuildUsageError(BuildError):
    """Raised when the build is invoked incorrectly.

    Unknown target names, dependency cycles, bad flags and a missing release
    trigger all map to the usage exit status.
    """

    pass
