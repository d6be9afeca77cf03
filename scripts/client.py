#!/usr/bin/env python3
"""
Command-line client for KV-Snapshot.

Usage:
    python scripts/client.py                       # Prompt on localhost:8080
    python scripts/client.py --port 9090 -c "GET key1"

At the prompt, type PUT/GET/DELETEALL lines as the server expects them.
An empty line or EOF ends the session.
"""

import argparse
import socket
import sys


class KVSnapshotClient:
    """Blocking line client; one reply line per request line."""

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.address = (host, port)
        self.timeout = timeout
        self._sock = None
        self._stream = None

    def __enter__(self):
        self._sock = socket.create_connection(self.address, timeout=self.timeout)
        self._stream = self._sock.makefile('rwb')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stream.close()
        self._sock.close()

    def request(self, line: str) -> str:
        """Send one request line and return the reply without its newline."""
        self._stream.write(line.rstrip('\n').encode('utf-8') + b'\n')
        self._stream.flush()
        reply = self._stream.readline()
        if not reply:
            raise ConnectionError("server closed the connection")
        return reply.decode('utf-8').rstrip('\n')


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="KV-Snapshot command-line client")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--timeout", type=float, default=5.0, help="seconds per reply")
    parser.add_argument("-c", "--command", help="send one request, print the reply and exit")
    args = parser.parse_args(argv)

    try:
        with KVSnapshotClient(args.host, args.port, args.timeout) as client:
            if args.command:
                reply = client.request(args.command)
                print(reply)
                return 0 if reply.startswith("OK") else 1

            while True:
                try:
                    line = input(f"{args.host}:{args.port}> ").strip()
                except EOFError:
                    line = ""
                if not line or line.upper() == "QUIT":
                    return 0
                print(client.request(line))
    except OSError as exc:
        print(f"{args.host}:{args.port}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
