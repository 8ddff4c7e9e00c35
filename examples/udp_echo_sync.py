"""Example: UDP echo server and client built on UdpClient."""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dgramclient import UdpClient


def run_server():
    """Run the UDP echo server."""
    with UdpClient(local_endpoint=("127.0.0.1", 9999)) as server:
        print(f"UDP server listening on {server.local_endpoint}")
        try:
            while True:
                data, sender = server.receive()
                print(f"Received from {sender}: {data.decode()}")
                server.send(data, destination=sender)
        except KeyboardInterrupt:
            print("\nShutting down server...")


def run_client():
    """Run the UDP echo client."""
    with UdpClient() as client:
        client.connect("127.0.0.1", 9999)
        message = b"Hello, UDP Server!"
        print(f"Sending: {message.decode()}")
        client.send(message)
        response, _ = client.receive(timeout=5.0)
        print(f"Received: {response.decode()}")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "client":
        run_client()
    else:
        run_server()
