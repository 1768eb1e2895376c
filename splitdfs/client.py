"""Interactive client for the primary storage server."""

from __future__ import annotations

import argparse
import io
import os
import socket
import sys
import time
from functools import partial
from pathlib import Path
from typing import TextIO

from splitdfs.fsutil import BUFFER_SIZE
from splitdfs.primary import PORT

SERVER_IP = "127.0.0.1"
END_MARKER = b"ENDOFLIST"
PROMPT = "w25clients$ "

_TAR_NAMES = {
    ".c": "cfiles.tar",
    ".pdf": "pdf.tar",
    ".txt": "text.tar",
}


def tar_name_for(filetype: str) -> str:
    """Name of the local archive a ``downltar`` of ``filetype`` is saved as."""
    try:
        return _TAR_NAMES[filetype]
    except KeyError:
        raise ValueError(f"unsupported archive type {filetype!r}") from None


def _is_error_reply(chunk: bytes) -> bool:
    return len(chunk) < BUFFER_SIZE and chunk.startswith(b"E")


class Client:
    """Sends user commands over one connection to the primary server."""

    def __init__(
        self,
        sock: socket.socket,
        workdir: str | os.PathLike[str] | None = None,
        out: TextIO | None = None,
    ):
        self.sock = sock
        self.workdir = Path(workdir) if workdir is not None else Path.cwd()
        self.out = out if out is not None else sys.stdout
        self.delay = 1.0

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def _send(self, text: str) -> None:
        self.sock.sendall(text.encode())

    def _pause(self) -> None:
        if self.delay > 0:
            time.sleep(self.delay)

    def _receive_response(self) -> str:
        parts = []
        while True:
            chunk = self.sock.recv(BUFFER_SIZE)
            if not chunk:
                break
            text = chunk.decode(errors="replace")
            self._write(text)
            parts.append(text)
            if len(chunk) < BUFFER_SIZE:
                break
        return "".join(parts)

    def upload_file(self, filename: str, destination_path: str) -> str:
        """Send a local file to the server and return its reply.

        Raises ``OSError`` if the local file cannot be read; nothing is sent then.
        """
        with open(self.workdir / filename, "rb") as handle:
            self._send(f"uploadf {filename} {destination_path}")
            self._pause()
            for chunk in iter(partial(handle.read, BUFFER_SIZE), b""):
                self.sock.sendall(chunk)
        return self._receive_response()

    def download_file(self, filepath: str) -> Path | None:
        """Fetch ``filepath`` into the working directory.

        Returns the saved path, or ``None`` if the server answered with an error.
        """
        self._send(f"downlf {filepath}")
        self._pause()
        target = self.workdir / filepath.rpartition("/")[2]
        with open(target, "wb") as handle:
            while True:
                chunk = self.sock.recv(BUFFER_SIZE)
                if not chunk:
                    break
                if _is_error_reply(chunk):
                    self._write(chunk.decode(errors="replace"))
                    handle.close()
                    target.unlink(missing_ok=True)
                    return None
                handle.write(chunk)
                if len(chunk) < BUFFER_SIZE:
                    break
        self._write(f"File downloaded: {target.name}\n")
        return target

    def remove_file(self, filepath: str) -> str:
        """Ask the server to delete ``filepath`` and return its reply."""
        self._send(f"removef {filepath}")
        reply = self.sock.recv(BUFFER_SIZE).decode(errors="replace")
        self._write(reply)
        return reply

    def _peek(self) -> bytes:
        try:
            return self.sock.recv(BUFFER_SIZE, socket.MSG_PEEK | socket.MSG_DONTWAIT)
        except BlockingIOError:
            return b""

    def download_tar(self, filetype: str) -> Path | None:
        """Fetch an archive of all stored files of ``filetype``.

        Returns the saved archive, or ``None`` when nothing was saved.
        """
        try:
            tarname = tar_name_for(filetype)
        except ValueError:
            self._write("Error: Only .c, .pdf, or .txt file types are supported.\n")
            return None

        self._send(f"downltar {filetype}")
        self._pause()

        if self._peek().startswith(b"E"):
            self._write(self.sock.recv(BUFFER_SIZE).decode(errors="replace"))
            return None

        target = self.workdir / tarname
        total = 0
        with open(target, "wb") as handle:
            while True:
                chunk = self.sock.recv(BUFFER_SIZE)
                if not chunk:
                    break
                if _is_error_reply(chunk):
                    self._write(chunk.decode(errors="replace"))
                    handle.close()
                    target.unlink(missing_ok=True)
                    return None
                handle.write(chunk)
                total += len(chunk)
                if len(chunk) < BUFFER_SIZE:
                    break

        if total == 0:
            self._write(f"Error: No files of type {filetype} found on server.\n")
            target.unlink(missing_ok=True)
            return None

        self._write(f"Successfully downloaded {tarname} containing all {filetype} files.\n")
        return target

    def display_filenames(self, pathname: str) -> str:
        """Print and return the server's listing of ``pathname``, up to the end marker."""
        self._send(f"dispfnames {pathname}")
        self._write(f"Files in {pathname}:\n")
        parts = []
        while True:
            chunk = self.sock.recv(BUFFER_SIZE - 1)
            if not chunk:
                break
            head, found, _ = chunk.partition(END_MARKER)
            text = head.decode(errors="replace")
            self._write(text)
            parts.append(text)
            if found:
                break
        return "".join(parts)

    def execute(self, line: str) -> bool:
        """Run one command line; returns ``False`` when the session should end."""
        tokens = line.split()
        if not tokens:
            return True
        command, arg1, arg2 = [*tokens, "", ""][:3]
        if command == "exit":
            return False
        try:
            if command == "uploadf":
                try:
                    self.upload_file(arg1, arg2)
                except FileNotFoundError as exc:
                    print(f"File not found: {exc}", file=sys.stderr)
            elif command == "downlf":
                self.download_file(arg1)
            elif command == "removef":
                self.remove_file(arg1)
            elif command == "downltar":
                self.download_tar(arg1)
            elif command == "dispfnames":
                self.display_filenames(arg1)
            else:
                self._write("Invalid command.\n")
        except ConnectionError:
            raise
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
        return True


def main(argv: list[str] | None = None) -> int:
    """Connect to the primary server and run commands read from standard input."""
    parser = argparse.ArgumentParser(description="Client for the primary storage server.")
    parser.add_argument("--host", default=SERVER_IP, help="address of the primary server")
    parser.add_argument("--port", type=int, default=PORT, help="port of the primary server")
    args = parser.parse_args(argv)

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((args.host, args.port))
    except OSError as exc:
        sock.close()
        print(f"Connection failed: {exc}", file=sys.stderr)
        return 1

    with sock:
        print("Connected to S1 server. Enter commands below:", flush=True)
        client = Client(sock)
        while True:
            try:
                line = input(PROMPT)
            except EOFError:
                break
            try:
                if not client.execute(line):
                    break
            except ConnectionError as exc:
                print(f"Connection lost: {exc}", file=sys.stderr)
                return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())