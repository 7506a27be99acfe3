"""Domain-specific errors for podwatch."""


class PodwatchError(Exception):
    """Base error for podwatch."""


class ConfigLoadError(PodwatchError):
    """Raised when the config file cannot be read."""


class ConfigValidationError(PodwatchError):
    """Raised when the config file does not conform to schema or semantics."""


class PreconditionError(PodwatchError):
    """Raised when the radio is disabled or required permissions are missing."""

    def __init__(self, reasons: list[str]) -> None:
        super().__init__("Cannot start scanning: " + "; ".join(reasons))
        self.reasons = reasons


class ScanFailedError(PodwatchError):
    """Raised when the radio reports that a scan could not be started."""

    def __init__(self, code: int, detail: str | None = None) -> None:
        message = f"Scan failed with error code {code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.code = code


class DecodeError(PodwatchError):
    """Raised when a manufacturer payload cannot be decoded."""


class InvalidLengthError(DecodeError):
    """Raised when a manufacturer payload is not exactly 27 bytes."""

    def __init__(self, length: int, expected: int) -> None:
        super().__init__(f"Expected {expected} bytes of manufacturer data, got {length}")
        self.length = length
        self.expected = expected


class RadioError(PodwatchError):
    """Raised when the radio backend is unusable."""
