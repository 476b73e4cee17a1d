"""Exception classes for orbwatch errors."""


class OrbwatchError(Exception):
    """Base exception for orbwatch errors."""

    pass


class ConfigurationError(OrbwatchError, ValueError):
    """A scan was invoked with invalid settings."""

    pass


class UnknownCoverageModeError(ConfigurationError):
    """Coverage mode name is not in the configuration table."""

    def __init__(self, mode: str, known: list[str]):
        self.mode = mode
        self.known = known
        super().__init__(
            f"Unknown coverage mode {mode!r}; expected one of: {', '.join(known)}"
        )


class InvalidThresholdError(ConfigurationError):
    """Proximity threshold is not a positive number."""

    pass


class PredictionCancelled(OrbwatchError):
    """A predictive scan stopped early because it was superseded."""

    pass
