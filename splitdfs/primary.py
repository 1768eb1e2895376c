"""The primary server: keeps ``.c`` files and forwards other types to secondaries."""

from __future__ import annotations

import argparse
import contextlib
import os
import socket
import sys
import threading
import time
from collections.abc import Iterable
from functools import partial

from splitdfs.fsutil import (
    BUFFER_SIZE,
    DIR_MODE,
    connect_to_server,
    home_dir,
    make_directory_from_path,
    recv_chunks,
    resolve_user_path,
    tar_matching,
)
from splitdfs.routing import (
    DEFAULT_BACKENDS,
    PRIMARY_TAG,
    Backend,
    forwarded_path,
    query_backend,
)

PORT = 1221
MAX_CLIENTS = 10
MAX_LISTED = 1023
LOCAL_EXTENSION = ".c"
END_OF_LIST = "ENDOFLIST\n"
TAR_TYPES = (".c", ".pdf", ".txt")

UPLOAD_OK = "Your file has been uploaded successfully.\n"
UNSUPPORTED = "Error: Unsupported file type.\n"
NO_EXTENSION = "Error: File has no extension.\n"
NO_SECONDARY = "Error: Could not connect to secondary server.\n"
NO_FILES = "Error: No files found.\n"


def _extension(text: str) -> str:
    """Return the text from the last dot onwards, or an empty string."""
    index = text.rfind(".")
    return text[index:] if index >= 0 else ""


class PrimaryServer:
    """Handles client sessions, storing ``.c`` files under ``<home>/S1``."""

    def __init__(
        self,
        home: str | os.PathLike[str] | None = None,
        host: str = "127.0.0.1",
        backends: Iterable[Backend] | None = None,
    ):
        self.home = os.fspath(home) if home is not None else home_dir()
        self.host = host
        chosen = DEFAULT_BACKENDS if backends is None else tuple(backends)
        self.backends: dict[str, Backend] = {b.extension: b for b in chosen}
        self.forward_delay = 1.0

    def _local_path(self, path: str) -> str:
        return resolve_user_path(self.home, path, PRIMARY_TAG)

    def _send(self, conn: socket.socket, text: str) -> None:
        conn.sendall(text.encode())

    def handle_uploadf(self, conn: socket.socket, filename: str, dest_path: str) -> None:
        """Receive a file from ``conn``; keep ``.c`` files, forward the rest."""
        ext = _extension(filename)
        if not ext:
            self._send(conn, "Invalid file extension.\n" + END_OF_LIST)
            return

        marker = f"~{PRIMARY_TAG}"
        if dest_path.startswith(marker):
            full_path = f"{self.home}/{PRIMARY_TAG}{dest_path[len(marker):]}/{filename}"
        else:
            full_path = f"{self.home}/{filename}"
        make_directory_from_path(full_path)

        try:
            handle = open(full_path, "wb")
        except OSError as exc:
            print(f"Cannot create file: {exc}", file=sys.stderr)
            self._send(conn, "Error creating file.\n")
            return
        with handle:
            for chunk in recv_chunks(conn):
                handle.write(chunk)
        print(f"[S1] Received {filename} -> {full_path}")

        if ext == LOCAL_EXTENSION:
            self._send(conn, UPLOAD_OK)
            return

        backend = self.backends.get(ext)
        if backend is None:
            self._send(conn, "Unsupported file type.\n")
            return

        try:
            remote = connect_to_server(self.host, backend.port)
        except OSError:
            self._send(conn, "Could not connect to secondary server.\n")
            return
        with remote:
            remote.sendall(f"uploadf {filename} {forwarded_path(dest_path, backend)}".encode())
            time.sleep(self.forward_delay)
            with open(full_path, "rb") as handle:
                for chunk in iter(partial(handle.read, BUFFER_SIZE), b""):
                    remote.sendall(chunk)
        os.remove(full_path)
        print(f"[S1] Forwarded {filename} to port {backend.port} and removed from S1")
        self._send(conn, UPLOAD_OK)

    def handle_downlf(self, conn: socket.socket, filepath: str) -> None:
        """Send the file named by ``filepath`` to ``conn``."""
        ext = _extension(filepath)
        if not ext:
            self._send(conn, NO_EXTENSION)
            return

        if ext == LOCAL_EXTENSION:
            full_path = self._local_path(filepath)
            try:
                handle = open(full_path, "rb")
            except OSError:
                self._send(conn, "Error: File not found on server.\n")
                return
            with handle:
                for chunk in iter(partial(handle.read, BUFFER_SIZE), b""):
                    conn.sendall(chunk)
            print(f"[S1] Sent .c file {full_path} to client")
            return

        backend = self.backends.get(ext)
        if backend is None:
            self._send(conn, UNSUPPORTED)
            return
        try:
            remote = connect_to_server(self.host, backend.port)
        except OSError:
            self._send(conn, NO_SECONDARY)
            return
        with remote:
            remote.sendall(f"downlf {forwarded_path(filepath, backend)}".encode())
            for chunk in recv_chunks(remote):
                conn.sendall(chunk)
        print(f"[S1] Forwarded {ext} file request to port {backend.port}")

    def handle_removef(self, conn: socket.socket, filepath: str) -> None:
        """Delete the file named by ``filepath`` and report the outcome to ``conn``."""
        ext = _extension(filepath)
        if not ext:
            self._send(conn, NO_EXTENSION)
            return

        if ext == LOCAL_EXTENSION:
            full_path = self._local_path(filepath)
            try:
                os.remove(full_path)
            except OSError as exc:
                print(f"Error removing file: {exc}", file=sys.stderr)
                self._send(conn, "Error: File could not be removed.\n")
            else:
                print(f"[S1] Removed .c file: {full_path}")
                self._send(conn, "File removed successfully.\n")
            return

        backend = self.backends.get(ext)
        if backend is None:
            self._send(conn, UNSUPPORTED)
            return
        try:
            remote = connect_to_server(self.host, backend.port)
        except OSError:
            self._send(conn, NO_SECONDARY)
            return
        with remote:
            remote.sendall(f"removef {forwarded_path(filepath, backend)}".encode())
            reply = remote.recv(BUFFER_SIZE)
        if reply:
            conn.sendall(reply)
        else:
            self._send(conn, "Error: No response from secondary server.\n")
        print(f"[S1] Forwarded remove request for {ext} to port {backend.port}")

    def handle_downltar(self, conn: socket.socket, filetype: str) -> None:
        """Send a tar archive of every stored file of ``filetype`` to ``conn``."""
        if filetype not in TAR_TYPES:
            self._send(conn, "Error: Invalid filetype. Only .c, .pdf, or .txt supported.\n")
            return

        if filetype == LOCAL_EXTENSION:
            data = tar_matching(f"{self.home}/{PRIMARY_TAG}", LOCAL_EXTENSION)
            if data:
                conn.sendall(data)
            print("[S1] Created and sent cfiles.tar")
            return

        backend = self.backends.get(filetype)
        if backend is None:
            self._send(conn, NO_FILES)
            return
        try:
            remote = connect_to_server(self.host, backend.port)
        except OSError:
            self._send(conn, NO_FILES)
            return
        with remote:
            remote.sendall(f"downltar {filetype}".encode())
            chunks = recv_chunks(remote)
            first = next(chunks, b"")
            if not first:
                self._send(conn, NO_FILES)
                return
            conn.sendall(first)
            for chunk in chunks:
                conn.sendall(chunk)
        print(f"[S1] Forwarded {filetype} tar file from port {backend.port}")

    def collect_filenames(self, pathname: str) -> list[str]:
        """Sorted names of stored files in ``pathname`` across all servers.

        Raises ``OSError`` if the directory does not exist on this server.
        """
        full_path = self._local_path(pathname)
        with os.scandir(full_path) as entries:
            names = [
                entry.name
                for entry in entries
                if entry.is_file(follow_symlinks=False)
                and _extension(entry.name) == LOCAL_EXTENSION
            ]

        marker = f"~{PRIMARY_TAG}"
        rest = pathname[len(marker):] if marker in pathname else pathname
        for backend in self.backends.values():
            if len(names) >= MAX_LISTED:
                break
            try:
                reply = query_backend(self.host, backend, f"dispfnames ~{backend.name}{rest}")
            except OSError:
                continue
            text = reply.decode(errors="replace")
            names.extend(line for line in text.split("\n") if line and backend.extension in line)

        return sorted(names[:MAX_LISTED])

    def handle_dispfnames(self, conn: socket.socket, pathname: str) -> None:
        """Send the listing of ``pathname`` to ``conn``, ended by the end-of-list marker."""
        try:
            names = self.collect_filenames(pathname)
        except OSError:
            self._send(conn, "Error: Directory not found.\n" + END_OF_LIST)
            return
        listing = "".join(f"{name}\n" for name in names) + END_OF_LIST
        if not names:
            listing += "(No files found)\n"
        self._send(conn, listing)

    def dispatch(self, conn: socket.socket, request: str | bytes) -> None:
        """Run the single command held in ``request``."""
        if isinstance(request, bytes):
            request = request.decode(errors="replace")
        command, arg1, arg2, *_ = [*request.split(), "", "", ""]
        if command == "uploadf":
            self.handle_uploadf(conn, arg1, arg2)
        elif command == "downlf":
            self.handle_downlf(conn, arg1)
        elif command == "removef":
            self.handle_removef(conn, arg1)
        elif command == "downltar":
            self.handle_downltar(conn, arg1)
        elif command == "dispfnames":
            self.handle_dispfnames(conn, arg1)
        else:
            self._send(conn, "Invalid or unimplemented command.\n")

    def handle_client(self, conn: socket.socket) -> None:
        """Serve commands from ``conn`` until the client disconnects."""
        with conn:
            while True:
                try:
                    request = conn.recv(BUFFER_SIZE)
                except ConnectionError:
                    return
                if not request:
                    return
                try:
                    self.dispatch(conn, request)
                except ConnectionError:
                    return

    def serve_forever(self, port: int = PORT) -> None:
        """Accept clients on ``port``, each served in its own thread."""
        with contextlib.suppress(OSError):
            os.mkdir(f"{self.home}/{PRIMARY_TAG}", DIR_MODE)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("", port))
            server.listen(MAX_CLIENTS)
            print(f"S1 server running on port {port}...", flush=True)
            while True:
                conn, _ = server.accept()
                threading.Thread(target=self.handle_client, args=(conn,), daemon=True).start()


def main(argv: list[str] | None = None) -> int:
    """Run the primary server until interrupted."""
    parser = argparse.ArgumentParser(description="Run the primary storage server.")
    parser.add_argument("--port", type=int, default=PORT, help="port to listen on")
    parser.add_argument(
        "--backend-host", default="127.0.0.1", help="address of the secondary servers"
    )
    args = parser.parse_args(argv)

    try:
        server = PrimaryServer(home_dir(), args.backend_host)
    except RuntimeError as exc:
        print(exc, file=sys.stderr)
        return 1

    try:
        server.serve_forever(args.port)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"Bind failed: {exc}", file=sys.stderr)
        return 1
    return 0