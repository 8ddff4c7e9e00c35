"""Send requests, argument validation and completion tokens."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from dgramclient.endpoint import Endpoint
from dgramclient.errors import (
    ArgumentRangeError,
    InvalidOperationError,
    InvalidStateError,
    IoFailure,
)

logger = logging.getLogger("dgramclient.operations")


def buffer_size(buffer: Any) -> int:
    """Number of bytes in a bytes-like object."""
    if buffer is None:
        raise TypeError("buffer must not be None")
    try:
        return memoryview(buffer).nbytes
    except TypeError:
        raise TypeError(
            f"buffer must be a bytes-like object, not {type(buffer).__name__}"
        ) from None


def validate_send_arguments(buffer: Any, length: int, offset: int = 0) -> None:
    """
    Check a send request before any resource is touched.

    Args:
        buffer: Bytes-like object holding the datagram
        length: Number of bytes to send
        offset: Start position within buffer

    Raises:
        TypeError: If buffer is not bytes-like or length/offset is not an int
        ArgumentRangeError: If offset or length falls outside the buffer
    """
    size = buffer_size(buffer)
    for name, value in (("offset", offset), ("length", length)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{name} must be an int, not {type(value).__name__}")

    if offset < 0 or offset > size:
        raise ArgumentRangeError(
            "offset", f"offset {offset} is outside buffer of {size} bytes"
        )
    if length < 0 or length > size - offset:
        raise ArgumentRangeError(
            "length",
            f"length {length} is outside buffer of {size} bytes at offset {offset}",
        )


@dataclass(frozen=True)
class SendRequest:
    """One outbound datagram. A destination of None means the connected peer."""

    buffer: Any
    length: int
    offset: int = 0
    destination: Optional[Endpoint] = None

    def payload(self) -> memoryview:
        """The bytes to transmit, without copying."""
        view = memoryview(self.buffer).cast("B")
        return view[self.offset : self.offset + self.length]


class OperationState(Enum):
    """Lifecycle of a pending send."""

    CREATED = "created"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    CONSUMED = "consumed"


class AsyncSendResult:
    """
    Completion token for a single begin_send call.

    The token completes exactly once, carrying either the byte count or an
    IoFailure, and can be consumed by end_send exactly once.
    """

    def __init__(
        self,
        owner: Any,
        request: SendRequest,
        callback: Optional[Callable[["AsyncSendResult"], None]] = None,
        state: Any = None,
    ):
        """
        Initialize the token.

        Args:
            owner: Client that created the operation
            request: The validated send request
            callback: Invoked once with this token when the send finishes
            state: Caller context, echoed back as async_state
        """
        self.owner = owner
        self.request = request
        self.async_state = state
        self._callback = callback
        self._state = OperationState.CREATED
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._bytes_sent: Optional[int] = None
        self._error: Optional[IoFailure] = None

    @property
    def state(self) -> OperationState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_completed(self) -> bool:
        """True once the underlying I/O has finished."""
        return self._done.is_set()

    @property
    def completed_synchronously(self) -> bool:
        """Always False: completion never happens inline with begin_send."""
        return False

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the operation completes.

        Args:
            timeout: Maximum seconds to wait (None = wait forever)

        Returns:
            True if the operation completed, False on timeout
        """
        return self._done.wait(timeout)

    def mark_submitted(self) -> None:
        """Record that the request was handed to the send executor."""
        with self._lock:
            if self._state is not OperationState.CREATED:
                raise InvalidStateError(
                    f"Cannot submit operation in state {self._state.value}"
                )
            self._state = OperationState.SUBMITTED

    def complete(
        self, bytes_sent: Optional[int] = None, error: Optional[IoFailure] = None
    ) -> None:
        """
        Finish the operation and notify the callback.

        Args:
            bytes_sent: Bytes handed to the OS on success
            error: Failure to surface from end_send

        Raises:
            InvalidStateError: If the operation already completed
        """
        with self._lock:
            if self._state in (OperationState.COMPLETED, OperationState.CONSUMED):
                raise InvalidStateError("Operation already completed")
            self._bytes_sent = bytes_sent
            self._error = error
            self._state = OperationState.COMPLETED
        self._done.set()

        if self._callback is None:
            return
        try:
            self._callback(self)
        except Exception:
            logger.exception("Send completion callback raised")

    def consume(self) -> int:
        """
        Take the result of the operation. Only succeeds once.

        Returns:
            Number of bytes sent

        Raises:
            InvalidOperationError: If not yet completed or already consumed
            IoFailure: If the transmission failed
        """
        with self._lock:
            if self._state is OperationState.CONSUMED:
                raise InvalidOperationError(
                    "end_send was already called for this operation"
                )
            if self._state is not OperationState.COMPLETED:
                raise InvalidOperationError("Operation has not completed yet")
            self._state = OperationState.CONSUMED

        if self._error is not None:
            raise self._error
        return self._bytes_sent

    def __repr__(self) -> str:
        return (
            f"AsyncSendResult(state={self._state.value}, "
            f"length={self.request.length}, destination={self.request.destination})"
        )
