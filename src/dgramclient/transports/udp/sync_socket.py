"""Synchronous UDP socket implementation."""

import socket
from typing import Any, Optional, Tuple

from dgramclient.endpoint import AddressFamily


class SyncUDPSocket:
    """Family-aware synchronous UDP socket."""

    def __init__(self, family: AddressFamily = AddressFamily.IPV4):
        """
        Initialize UDP socket.

        Args:
            family: Address family the OS socket is created for
        """
        self.family = family
        self.socket: Optional[socket.socket] = None

    def _require_socket(self) -> socket.socket:
        if not self.socket:
            raise ConnectionError("Socket not created")
        return self.socket

    def create(self) -> None:
        """Create the OS socket."""
        if self.socket is not None:
            raise ConnectionError("Socket already created")
        self.socket = socket.socket(self.family.value, socket.SOCK_DGRAM)

    def bind(self, host: str = "", port: int = 0) -> Tuple[str, int]:
        """
        Bind socket to a local address.

        Args:
            host: Local hostname or IP ("" for any)
            port: Local port (0 for automatic assignment)

        Returns:
            The bound (host, port), with an auto-assigned port filled in
        """
        sock = self._require_socket()
        sock.bind((host, port))
        return self.local_address

    def connect(self, address: Tuple[str, int]) -> None:
        """
        Restrict the socket to a single peer.

        Args:
            address: Peer address tuple (host, port)
        """
        self._require_socket().connect(address)

    def send(self, data: Any) -> int:
        """
        Send data to the connected peer.

        Args:
            data: Bytes-like object to send

        Returns:
            Number of bytes sent

        Raises:
            ConnectionError: If socket not created
        """
        return self._require_socket().send(data)

    def send_to(self, data: Any, address: Tuple[str, int]) -> int:
        """
        Send data to specific address.

        Args:
            data: Bytes-like object to send
            address: Target address tuple (host, port)

        Returns:
            Number of bytes sent

        Raises:
            ConnectionError: If socket not created
        """
        return self._require_socket().sendto(data, address)

    def receive_from(
        self, buffer_size: int = 65535, timeout: Optional[float] = None
    ) -> Tuple[bytes, Tuple[str, int]]:
        """
        Receive data from any sender.

        Args:
            buffer_size: Size of receive buffer
            timeout: Seconds to wait (None blocks indefinitely)

        Returns:
            Tuple of (data, sender_address)

        Raises:
            ConnectionError: If socket not created
        """
        sock = self._require_socket()
        # The socket is shared with senders; only this call sees the timeout
        previous = sock.gettimeout()
        sock.settimeout(timeout)
        try:
            return sock.recvfrom(buffer_size)
        finally:
            sock.settimeout(previous)

    def set_option(self, level: int, option: int, value: int) -> None:
        """Set a socket option."""
        self._require_socket().setsockopt(level, option, value)

    def get_option(self, level: int, option: int) -> int:
        """Read a socket option."""
        return self._require_socket().getsockopt(level, option)

    @property
    def local_address(self) -> Tuple[str, int]:
        """Locally bound (host, port)."""
        name = self._require_socket().getsockname()
        return (name[0], name[1])

    @property
    def is_created(self) -> bool:
        """Whether the OS socket currently exists."""
        return self.socket is not None

    def close(self) -> None:
        """Close socket."""
        if self.socket:
            self.socket.close()
            self.socket = None
