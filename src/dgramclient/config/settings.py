"""Client configuration settings."""

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dgramclient.endpoint import AddressFamily

CONFIG_FILENAME = "dgramclient.toml"


@dataclass
class ClientConfig:
    """UDP client configuration."""

    # None defers the choice to the first destination
    family: Optional[str] = None
    local_host: str = ""
    local_port: Optional[int] = None
    buffer_size: int = 65535
    send_timeout: float = 30.0
    max_workers: int = 4

    # Socket options
    enable_broadcast: bool = False
    ttl: Optional[int] = None

    def address_family(self) -> Optional[AddressFamily]:
        """Configured family as an AddressFamily, or None if unset."""
        if self.family is None:
            return None
        return AddressFamily.from_name(self.family)


def discover_config(start: Optional[Path] = None) -> Optional[Path]:
    """
    Walk up from start (default: cwd) looking for dgramclient.toml.

    Args:
        start: Directory to start searching from

    Returns:
        Path to the config file, or None if not found
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """
    Load a ClientConfig from the [client] table of a TOML file.

    If path is None, discovers dgramclient.toml from the current directory
    upwards and falls back to defaults when none is found.

    Args:
        path: Explicit path to a TOML config file

    Returns:
        Loaded ClientConfig

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ValueError: If the [client] table has unknown keys
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return ClientConfig()
        path = discovered

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("rb") as f:
        raw = tomllib.load(f)

    client_raw = raw.get("client", {})
    known = {f.name for f in fields(ClientConfig)}
    unknown = sorted(set(client_raw) - known)
    if unknown:
        raise ValueError(f"Unknown client config keys: {', '.join(unknown)}")

    config = ClientConfig(**client_raw)
    # Fail early on a bad family name
    config.address_family()
    return config
