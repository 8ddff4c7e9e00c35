"""UDP client with lazy socket creation and begin/end asynchronous sends."""

from dgramclient.client import ClientStatus, UdpClient
from dgramclient.config.settings import ClientConfig, load_config
from dgramclient.endpoint import AddressFamily, Endpoint, resolve_endpoint
from dgramclient.errors import (
    AddressError,
    ArgumentRangeError,
    DgramClientError,
    InvalidOperationError,
    InvalidStateError,
    IoFailure,
)
from dgramclient.operations import AsyncSendResult, OperationState

__version__ = "0.1.0"
__all__ = [
    "UdpClient",
    "ClientStatus",
    "ClientConfig",
    "load_config",
    "AddressFamily",
    "Endpoint",
    "resolve_endpoint",
    "AsyncSendResult",
    "OperationState",
    "DgramClientError",
    "ArgumentRangeError",
    "AddressError",
    "InvalidStateError",
    "InvalidOperationError",
    "IoFailure",
    "__version__",
]
