"""Exception types for sysmon."""


class SysmonError(Exception):
    """Base class for all sysmon errors."""


class CollectionError(SysmonError):
    """A metric could not be collected during one sampling cycle."""

    def __init__(self, metric: str, reason: str) -> None:
        super().__init__(f"{metric}: {reason}")
        self.metric = metric
        self.reason = reason


class UnavailableError(CollectionError):
    """The data source for a metric does not exist on this host."""

    def __init__(self, metric: str, reason: str = "data source unavailable") -> None:
        super().__init__(metric, reason)


class ParseFailureError(CollectionError):
    """A reading was missing, unparsable or out of range."""

    def __init__(self, metric: str, reason: str = "unparsable reading") -> None:
        super().__init__(metric, reason)


class CollectionTimeout(CollectionError):
    """The data source did not answer in time."""

    def __init__(self, metric: str, timeout: float) -> None:
        super().__init__(metric, f"timed out after {timeout:g}s")
        self.timeout = timeout


class DivideByZeroError(CollectionError):
    """A percentage was requested against a zero total."""

    def __init__(self, metric: str = "memory") -> None:
        super().__init__(metric, "total is zero")


class ConfigError(SysmonError):
    """Invalid command line or configuration; fatal before sampling."""


class InvalidIntervalError(ConfigError):
    """The watch interval is not a positive integer."""

    def __init__(self, value: object = None, message: str | None = None) -> None:
        super().__init__(message or f"Watch interval must be a positive number, got {value!r}")
        self.value = value


class NoMetricSelectedError(ConfigError):
    """No metric was requested."""

    def __init__(self) -> None:
        super().__init__("You must specify at least one option (-c, -m, -d, or -a)")


class UnknownFlagError(ConfigError):
    """An unrecognized command line option was given."""
