"""UDP client with a lazily created socket and begin/end sends."""

import asyncio
import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Union

from dgramclient.config.settings import ClientConfig
from dgramclient.endpoint import AddressFamily, Endpoint, as_endpoint, resolve_endpoint
from dgramclient.errors import (
    AddressError,
    InvalidOperationError,
    InvalidStateError,
    IoFailure,
)
from dgramclient.operations import (
    AsyncSendResult,
    SendRequest,
    buffer_size,
    validate_send_arguments,
)
from dgramclient.transports.udp.sync_socket import SyncUDPSocket

logger = logging.getLogger("dgramclient.client")

Destination = Union[Endpoint, Tuple[str, int]]
SendCallback = Callable[[AsyncSendResult], None]


class ClientStatus(Enum):
    """Client status."""

    OPEN = "open"
    CONNECTED = "connected"
    CLOSED = "closed"


class UdpClient:
    """
    UDP client owning a single socket.

    The socket is created on first use and reused for the lifetime of the
    client. Sends run on a small thread pool; begin_send returns a token
    immediately and end_send collects the result.
    """

    def __init__(
        self,
        family: Optional[AddressFamily] = None,
        local_endpoint: Optional[Tuple[str, int]] = None,
        config: Optional[ClientConfig] = None,
    ):
        """
        Initialize the client.

        Args:
            family: Address family. If given, the socket is created now.
                    If None, it is inferred from the first destination.
            local_endpoint: Optional (host, port) to bind the socket to.
                            Binding creates the socket now.
            config: Optional ClientConfig. If None, defaults are used.
        """
        self.config = config if config is not None else ClientConfig()
        if family is None:
            family = self.config.address_family()
        if local_endpoint is None and self.config.local_port is not None:
            local_endpoint = (self.config.local_host, self.config.local_port)

        self._local: Optional[Endpoint] = None
        if local_endpoint is not None:
            host, port = local_endpoint
            self._local = (
                resolve_endpoint(host, port, family)
                if host
                else Endpoint("", port, family or AddressFamily.IPV4)
            )
            if family is None:
                family = self._local.family

        self._family = family
        self._socket: Optional[SyncUDPSocket] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._connect_lock = threading.Lock()
        self._remote: Optional[Endpoint] = None
        self._closed = False

        if self._family is not None:
            self._acquire_socket()

    def _acquire_socket(
        self, family: Optional[AddressFamily] = None
    ) -> SyncUDPSocket:
        """Return the client's socket, creating it on first call."""
        with self._lock:
            if self._closed:
                raise InvalidStateError("Client is closed")
            if self._socket is None:
                self._socket = self._create_socket(family)
            return self._socket

    def _create_socket(self, family: Optional[AddressFamily]) -> SyncUDPSocket:
        if self._family is None:
            self._family = family or AddressFamily.IPV4

        sock = SyncUDPSocket(self._family)
        sock.create()
        try:
            if self._local is not None:
                bound = sock.bind(self._local.address, self._local.port)
                logger.debug("Bound UDP socket to %s:%d", bound[0], bound[1])
            if self.config.enable_broadcast:
                sock.set_option(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            if self.config.ttl is not None:
                sock.set_option(*self._ttl_option(), self.config.ttl)
        except OSError as exc:
            sock.close()
            raise IoFailure(f"Failed to set up UDP socket: {exc}") from exc

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="dgramclient-send",
        )
        logger.debug("Created %s UDP socket", self._family.name)
        return sock

    def _ttl_option(self) -> Tuple[int, int]:
        if self._family is AddressFamily.IPV6:
            return (socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS)
        return (socket.IPPROTO_IP, socket.IP_TTL)

    @property
    def client(self) -> SyncUDPSocket:
        """
        The underlying socket.

        Created on first access; every later access returns the same object.

        Raises:
            InvalidStateError: If the client is closed
        """
        return self._acquire_socket()

    @property
    def family(self) -> Optional[AddressFamily]:
        """Address family, or None while it has not been decided."""
        return self._family

    @property
    def is_connected(self) -> bool:
        """True once connect() has succeeded."""
        return self._remote is not None

    @property
    def remote_endpoint(self) -> Optional[Endpoint]:
        """Peer set by connect(), if any."""
        return self._remote

    @property
    def local_endpoint(self) -> Optional[Endpoint]:
        """Locally bound endpoint, or None if the socket is not bound yet."""
        with self._lock:
            sock = self._socket
        if sock is None or not sock.is_created:
            return None
        host, port = sock.local_address
        if port == 0:
            return None
        return Endpoint(host, port, sock.family)

    @property
    def enable_broadcast(self) -> bool:
        """Whether SO_BROADCAST is set on the socket."""
        return bool(self.client.get_option(socket.SOL_SOCKET, socket.SO_BROADCAST))

    @enable_broadcast.setter
    def enable_broadcast(self, value: bool) -> None:
        self.client.set_option(socket.SOL_SOCKET, socket.SO_BROADCAST, int(value))

    @property
    def ttl(self) -> int:
        """Time-to-live (hop limit) of outgoing unicast datagrams."""
        sock = self.client
        return sock.get_option(*self._ttl_option())

    @ttl.setter
    def ttl(self, value: int) -> None:
        sock = self.client
        sock.set_option(*self._ttl_option(), value)

    def get_status(self) -> ClientStatus:
        """
        Get the current client status.

        Returns:
            Current ClientStatus
        """
        if self._closed:
            return ClientStatus.CLOSED
        if self._remote is not None:
            return ClientStatus.CONNECTED
        return ClientStatus.OPEN

    def connect(self, host: str, port: int) -> None:
        """
        Restrict the client to a single remote peer.

        Connecting again to the same peer does nothing.

        Args:
            host: Peer hostname or IP
            port: Peer port

        Raises:
            ArgumentRangeError: If port is out of range
            AddressError: If host cannot be resolved
            InvalidStateError: If already connected to a different peer
            IoFailure: If the OS rejects the connect
        """
        endpoint = resolve_endpoint(host, port, self._family)
        with self._connect_lock:
            if self._remote is not None:
                if endpoint == self._remote:
                    return
                raise InvalidStateError(
                    f"Already connected to {self._remote}, cannot connect to {endpoint}"
                )

            sock = self._acquire_socket(endpoint.family)
            if sock.family is not endpoint.family:
                raise AddressError(
                    f"{endpoint} does not match the {sock.family.name} socket"
                )
            try:
                sock.connect(endpoint.as_tuple())
            except OSError as exc:
                raise IoFailure(f"Connect to {endpoint} failed: {exc}") from exc
            self._remote = endpoint
        logger.debug("Connected UDP client to %s", endpoint)

    async def connect_async(self, host: str, port: int) -> None:
        """Run connect() without blocking the event loop."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.connect, host, port)

    def _target(self, destination: Optional[Destination]) -> Optional[Endpoint]:
        """Resolve a send destination. None means the connected peer."""
        if destination is None:
            if self._remote is None:
                raise InvalidStateError(
                    "No destination given and the client is not connected"
                )
            return None

        endpoint = as_endpoint(destination, self._family)
        if self._remote is not None:
            if endpoint != self._remote:
                raise InvalidOperationError(
                    f"Cannot send to {endpoint} while connected to {self._remote}"
                )
            return None
        return endpoint

    def begin_send(
        self,
        buffer: Any,
        length: int,
        destination: Optional[Destination] = None,
        callback: Optional[SendCallback] = None,
        state: Any = None,
    ) -> AsyncSendResult:
        """
        Start sending one datagram without blocking.

        Args:
            buffer: Bytes-like object holding the datagram
            length: Number of bytes of buffer to send
            destination: (host, port) or Endpoint; omit when connected
            callback: Called once with the token when the send finishes
            state: Caller context available as token.async_state

        Returns:
            Token to pass to end_send

        Raises:
            ArgumentRangeError: If length is negative or exceeds the buffer
            AddressError: If destination cannot be resolved
            InvalidStateError: If closed, or no destination while unconnected
            InvalidOperationError: If destination differs from the connected peer
        """
        validate_send_arguments(buffer, length)
        if self._closed:
            raise InvalidStateError("Client is closed")

        endpoint = self._target(destination)
        sock = self._acquire_socket(endpoint.family if endpoint else None)
        if endpoint is not None and sock.family is not endpoint.family:
            raise AddressError(
                f"{endpoint} does not match the {sock.family.name} socket"
            )

        request = SendRequest(buffer=buffer, length=length, destination=endpoint)
        result = AsyncSendResult(self, request, callback=callback, state=state)
        with self._lock:
            if self._closed:
                raise InvalidStateError("Client is closed")
            result.mark_submitted()
            self._executor.submit(self._run_send, sock, result)
        return result

    def _run_send(self, sock: SyncUDPSocket, result: AsyncSendResult) -> None:
        try:
            sent = self._transmit(sock, result.request)
        except IoFailure as failure:
            logger.warning("UDP send failed: %s", failure)
            result.complete(error=failure)
        else:
            result.complete(bytes_sent=sent)

    def _transmit(self, sock: SyncUDPSocket, request: SendRequest) -> int:
        if self._closed:
            raise IoFailure("Client was closed before the datagram was sent")
        target = request.destination or self._remote
        try:
            if request.destination is None:
                return sock.send(request.payload())
            return sock.send_to(request.payload(), request.destination.as_tuple())
        except OSError as exc:
            raise IoFailure(f"Send to {target} failed: {exc}") from exc

    def end_send(self, token: AsyncSendResult) -> int:
        """
        Finish a send started with begin_send.

        Args:
            token: Token returned by (and passed to the callback of) begin_send

        Returns:
            Number of bytes sent

        Raises:
            InvalidOperationError: If the token is foreign, not completed yet
                                   or already ended
            IoFailure: If the transmission failed
        """
        if not isinstance(token, AsyncSendResult) or token.owner is not self:
            raise InvalidOperationError(
                "Token was not returned by begin_send on this client"
            )
        return token.consume()

    def send(
        self,
        buffer: Any,
        length: Optional[int] = None,
        destination: Optional[Destination] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """
        Send one datagram and wait for the result.

        Args:
            buffer: Bytes-like object holding the datagram
            length: Bytes to send (defaults to the whole buffer)
            destination: (host, port) or Endpoint; omit when connected
            timeout: Seconds to wait (defaults to config.send_timeout)

        Returns:
            Number of bytes sent

        Raises:
            TimeoutError: If the send does not complete in time
        """
        if length is None:
            length = buffer_size(buffer)
        if timeout is None:
            timeout = self.config.send_timeout
        result = self.begin_send(buffer, length, destination)
        if not result.wait(timeout):
            raise TimeoutError(f"Send did not complete within {timeout}s")
        return self.end_send(result)

    async def send_async(
        self,
        buffer: Any,
        length: Optional[int] = None,
        destination: Optional[Destination] = None,
    ) -> int:
        """
        Send one datagram from a coroutine.

        Args:
            buffer: Bytes-like object holding the datagram
            length: Bytes to send (defaults to the whole buffer)
            destination: (host, port) or Endpoint; omit when connected

        Returns:
            Number of bytes sent
        """
        if length is None:
            length = buffer_size(buffer)
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(result: AsyncSendResult) -> None:
            if future.done():
                return
            try:
                future.set_result(self.end_send(result))
            except (InvalidStateError, IoFailure) as exc:
                future.set_exception(exc)

        self.begin_send(
            buffer,
            length,
            destination,
            callback=lambda result: loop.call_soon_threadsafe(settle, result),
        )
        return await future

    def receive(self, timeout: Optional[float] = None) -> Tuple[bytes, Endpoint]:
        """
        Receive one datagram.

        Args:
            timeout: Seconds to wait (None = wait forever)

        Returns:
            Tuple of (data, sender endpoint)

        Raises:
            InvalidStateError: If the socket is neither bound nor connected
            TimeoutError: If nothing arrives in time
            IoFailure: If the OS reports a receive error
        """
        if self._closed:
            raise InvalidStateError("Client is closed")
        if self.local_endpoint is None:
            raise InvalidStateError(
                "Client must be bound or connected before receiving"
            )
        sock = self._acquire_socket()
        try:
            data, address = sock.receive_from(self.config.buffer_size, timeout)
        except TimeoutError:
            raise
        except OSError as exc:
            raise IoFailure(f"Receive failed: {exc}") from exc
        return data, Endpoint(address[0], address[1], sock.family)

    async def receive_async(
        self, timeout: Optional[float] = None
    ) -> Tuple[bytes, Endpoint]:
        """Run receive() without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.receive, timeout)

    def close(self) -> None:
        """
        Close the client and release its socket.

        Sends still queued complete with IoFailure. Calling close again
        does nothing.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sock, executor = self._socket, self._executor
            self._socket = None
            self._executor = None
            self._remote = None

        if executor is not None:
            executor.shutdown(wait=False)
        if sock is not None:
            sock.close()
        logger.debug("Closed UDP client")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        self.close()
