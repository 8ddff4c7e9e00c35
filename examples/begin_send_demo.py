"""Example: begin_send / end_send with a completion callback."""

import sys
import threading
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dgramclient import IoFailure, UdpClient


def main():
    """Send one datagram to an unused loopback port and report the result."""
    done = threading.Event()

    def on_complete(result):
        client = result.async_state
        try:
            print(f"Sent {client.end_send(result)} byte(s)")
        except IoFailure as failure:
            print(f"Send failed: {failure}")
        finally:
            done.set()

    with UdpClient() as client:
        client.begin_send(b"\x01", 1, ("127.0.0.1", 8), on_complete, client)
        if not done.wait(5.0):
            print("Timed out waiting for completion")


if __name__ == "__main__":
    main()
