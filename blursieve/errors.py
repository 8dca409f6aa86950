"""
Exception hierarchy for the blur filter.

Every error carries a stable snake_case `code` so log lines and the ASCII
report can name the failure kind without parsing the message.

Per-path errors (ResolutionError subclasses) are recovered by the caller:
the path is logged and skipped. StreamReadError, NoDetectorsEnabledError and
ConfigError end the run.
"""


class BlurSieveError(Exception):
    """Base exception for all domain errors."""

    code = "blursieve_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ResolutionError(BlurSieveError):
    """An image source could not be turned into an intensity buffer."""

    code = "resolution_error"


class ImageNotFoundError(ResolutionError, FileNotFoundError):
    code = "not_found"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"File not found: {path}")


class ImageDecodeError(ResolutionError):
    code = "decode_error"


class EmptyImageError(ResolutionError):
    code = "empty_image"

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        super().__init__(f"Image has zero area: {width}x{height}")


class ImageReadError(ResolutionError):
    code = "io_error"


class StreamReadError(BlurSieveError):
    """Reading the record stream itself failed. Always fatal."""

    code = "io_error"


class NoDetectorsEnabledError(BlurSieveError):
    code = "no_detectors_enabled"

    def __init__(self) -> None:
        super().__init__("No blur detectors are enabled; cannot classify image")


class ConfigError(BlurSieveError, ValueError):
    code = "config_error"
