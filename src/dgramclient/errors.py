"""Exception types raised by the UDP client."""


class DgramClientError(Exception):
    """Base class for all client errors."""


class ArgumentRangeError(DgramClientError, ValueError):
    """
    An argument is outside its allowed range.

    Raised synchronously, before any I/O is attempted.
    """

    def __init__(self, param_name: str, message: str = ""):
        """
        Initialize ArgumentRangeError.

        Args:
            param_name: Name of the offending parameter
            message: Optional detail message
        """
        self.param_name = param_name
        super().__init__(message or f"Argument '{param_name}' is out of range")


class AddressError(DgramClientError, ValueError):
    """An address could not be parsed or resolved."""


class InvalidStateError(DgramClientError):
    """Operation attempted while the client is in an incompatible state."""


class InvalidOperationError(InvalidStateError):
    """A completion token was misused or a send targets a foreign peer."""


class IoFailure(DgramClientError):
    """The underlying datagram transmission failed."""
