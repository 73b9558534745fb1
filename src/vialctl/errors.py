"""Error kinds raised by vialctl.

Every error is terminal for the invocation. The CLI prints the message to
stderr and exits with the error's ``exit_code``.
"""

EXIT_UNEXPECTED = 1
EXIT_INVALID_INPUT = 2
EXIT_NO_DEVICE = 3
EXIT_TRANSPORT = 4
EXIT_PARTIAL_WRITE = 5


class VialctlError(Exception):
    """Base class for all vialctl errors."""

    exit_code = EXIT_UNEXPECTED


class InvalidColorFormat(VialctlError, ValueError):
    exit_code = EXIT_INVALID_INPUT


class InvalidBrightness(VialctlError, ValueError):
    exit_code = EXIT_INVALID_INPUT


class InvalidWhitePoint(VialctlError, ValueError):
    exit_code = EXIT_INVALID_INPUT


class ConfigParseError(VialctlError, ValueError):
    exit_code = EXIT_INVALID_INPUT


class DeviceNotFound(VialctlError):
    exit_code = EXIT_NO_DEVICE


class DeviceNotSupported(VialctlError):
    exit_code = EXIT_NO_DEVICE


class TransportError(VialctlError):
    exit_code = EXIT_TRANSPORT


class PartialWriteFailure(TransportError):
    """A split keyboard's primary half was written but the other half failed."""

    exit_code = EXIT_PARTIAL_WRITE

    def __init__(self, half: str, cause: Exception):
        self.half = half
        self.cause = cause
        super().__init__(
            f"primary half updated but {half} half failed: {cause}"
        )
