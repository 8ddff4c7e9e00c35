"""Remote endpoints and address resolution."""

import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from dgramclient.errors import AddressError, ArgumentRangeError

MIN_PORT = 0
MAX_PORT = 65535


class AddressFamily(Enum):
    """Address families a client socket can be created for."""

    IPV4 = socket.AF_INET
    IPV6 = socket.AF_INET6

    @classmethod
    def from_name(cls, name: str) -> "AddressFamily":
        """
        Look up a family by its configuration name.

        Args:
            name: "ipv4" or "ipv6" (case-insensitive)

        Returns:
            Matching AddressFamily

        Raises:
            ValueError: If the name is unknown
        """
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown address family '{name}'") from None


def validate_port(port: int) -> None:
    """Raise ArgumentRangeError("port") unless port is a valid UDP port."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise TypeError(f"port must be an int, not {type(port).__name__}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ArgumentRangeError(
            "port", f"Port {port} is outside [{MIN_PORT}, {MAX_PORT}]"
        )


@dataclass(frozen=True)
class Endpoint:
    """A resolved (address, port) pair."""

    address: str
    port: int
    family: AddressFamily = AddressFamily.IPV4

    def __post_init__(self):
        validate_port(self.port)

    def as_tuple(self) -> Tuple[str, int]:
        """Socket address tuple suitable for sendto/connect."""
        return (self.address, self.port)

    def __str__(self) -> str:
        if self.family is AddressFamily.IPV6:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


def resolve_endpoint(
    host: str, port: int, family: Optional[AddressFamily] = None
) -> Endpoint:
    """
    Resolve a hostname or IP literal into an Endpoint.

    When no family is given, an IPv4 result is preferred over IPv6.

    Args:
        host: Hostname or IP literal
        port: Port number
        family: Restrict resolution to this family

    Returns:
        Resolved Endpoint

    Raises:
        ArgumentRangeError: If port is out of range
        AddressError: If the host cannot be resolved
    """
    validate_port(port)
    if not isinstance(host, str) or not host:
        raise AddressError(f"Invalid host: {host!r}")

    wanted = family.value if family is not None else socket.AF_UNSPEC
    try:
        infos = socket.getaddrinfo(host, port, wanted, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise AddressError(f"Cannot resolve '{host}': {exc}") from exc

    candidates = [
        info for info in infos if info[0] in (socket.AF_INET, socket.AF_INET6)
    ]
    if not candidates:
        raise AddressError(f"No usable address found for '{host}'")

    candidates.sort(key=lambda info: info[0] != socket.AF_INET)
    af, _, _, _, sockaddr = candidates[0]
    return Endpoint(
        address=sockaddr[0], port=sockaddr[1], family=AddressFamily(af)
    )


def as_endpoint(
    destination: Union[Endpoint, Tuple[str, int]],
    family: Optional[AddressFamily] = None,
) -> Endpoint:
    """
    Normalize a destination given as an Endpoint or (host, port) tuple.

    Raises:
        AddressError: If the destination is malformed or unresolvable
    """
    if isinstance(destination, Endpoint):
        return resolve_endpoint(destination.address, destination.port, family)
    try:
        host, port = destination
    except (TypeError, ValueError):
        raise AddressError(
            f"Destination must be (host, port), got {destination!r}"
        ) from None
    return resolve_endpoint(host, port, family)
