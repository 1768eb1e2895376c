"""A storage server that keeps files of a single extension under ``$HOME/<name>``."""

from __future__ import annotations

import contextlib
import os
import socket
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from splitdfs.fsutil import (
    BUFFER_SIZE,
    DIR_MODE,
    make_directory,
    recv_chunks,
    resolve_user_path,
    tar_matching,
)


def _extension(text: str) -> str:
    """Return the text from the last dot onwards, or an empty string."""
    index = text.rfind(".")
    return text[index:] if index >= 0 else ""


@dataclass(frozen=True)
class SecondaryConfig:
    """What a secondary server stores and the replies it gives."""

    name: str
    port: int
    extension: str
    label: str
    download_type_error: str
    not_found_error: str
    remove_type_error: str
    archive: bool = True
    archive_type_error: str | None = None

    @property
    def remove_success(self) -> str:
        return f"{self.label} file removed successfully.\n"

    @property
    def remove_failure(self) -> str:
        return f"Error: Could not remove {self.label} file.\n"


class SecondaryServer:
    """Serves one request per connection for files of the configured type."""

    def __init__(self, config: SecondaryConfig, home: str | os.PathLike[str]):
        self.config = config
        self.home = os.fspath(home)
        self.root = Path(self.home) / config.name
        self._marker = f"~{config.name}"

    def _strip_marker(self, path: str) -> str | None:
        if path.startswith(self._marker):
            return path[len(self._marker):]
        return None

    def target_dir(self, dest_path: str) -> Path:
        """Directory an upload to ``dest_path`` is stored in."""
        rest = self._strip_marker(dest_path)
        if rest is None:
            rest = dest_path
        return Path(f"{self.home}/{self.config.name}{rest}")

    def _raw_file_path(self, path: str) -> str:
        rest = self._strip_marker(path)
        if rest is not None:
            return f"{self.home}/{self.config.name}{rest}"
        return f"{self.home}/{self.config.name}/{path}"

    def file_path(self, path: str) -> Path:
        """Location on disk of the stored file named by ``path``."""
        return Path(self._raw_file_path(path))

    def list_dir(self, path: str) -> list[str]:
        """Names of regular files of the served type in the directory ``path``."""
        directory = resolve_user_path(self.home, path, self.config.name)
        with os.scandir(directory) as entries:
            return [
                entry.name
                for entry in entries
                if entry.is_file(follow_symlinks=False)
                and _extension(entry.name) == self.config.extension
            ]

    def store(self, filename: str, dest_path: str, chunks: Iterable[bytes]) -> Path:
        """Write ``chunks`` to ``filename`` inside the upload directory for ``dest_path``."""
        directory = self.target_dir(dest_path)
        make_directory(directory)
        target = Path(f"{directory}/{filename}")
        with open(target, "wb") as handle:
            for chunk in chunks:
                handle.write(chunk)
        print(f"[{self.config.name}] Saved {filename} to {target}")
        return target

    def remove(self, path: str) -> Path:
        """Delete the stored file; ``ValueError`` for a wrong type, ``OSError`` on failure."""
        raw = self._raw_file_path(path)
        if _extension(raw) != self.config.extension:
            raise ValueError(f"not a {self.config.label} file: {raw}")
        os.remove(raw)
        print(f"[{self.config.name}] Removed {self.config.label} file: {raw}")
        return Path(raw)

    def archive(self) -> bytes:
        """Tar archive of every stored file of the served type; empty if there are none."""
        return tar_matching(self.root, self.config.extension)

    def _upload(self, conn: socket.socket, filename: str, dest_path: str) -> None:
        try:
            self.store(filename, dest_path, recv_chunks(conn))
        except OSError as exc:
            print(f"Error creating file: {exc}", file=sys.stderr)

    def _download(self, conn: socket.socket, path: str, _unused: str) -> None:
        raw = self._raw_file_path(path)
        if _extension(raw) != self.config.extension:
            conn.sendall(self.config.download_type_error.encode())
            return
        try:
            handle = open(raw, "rb")
        except OSError as exc:
            conn.sendall(self.config.not_found_error.encode())
            print(f"Error opening file for download: {exc}", file=sys.stderr)
            return
        with handle:
            for chunk in iter(partial(handle.read, BUFFER_SIZE), b""):
                conn.sendall(chunk)
        print(f"[{self.config.name}] Sent {self.config.label} file {raw}")

    def _remove(self, conn: socket.socket, path: str, _unused: str) -> None:
        try:
            self.remove(path)
        except ValueError:
            conn.sendall(self.config.remove_type_error.encode())
        except OSError as exc:
            print(f"Error removing file: {exc}", file=sys.stderr)
            conn.sendall(self.config.remove_failure.encode())
        else:
            conn.sendall(self.config.remove_success.encode())

    def _tar(self, conn: socket.socket, filetype: str, _unused: str) -> None:
        if not self.config.archive:
            return
        if filetype != self.config.extension:
            if self.config.archive_type_error:
                conn.sendall(self.config.archive_type_error.encode())
            return
        data = self.archive()
        if data:
            conn.sendall(data)
            print(f"[{self.config.name}] Created and sent {self.config.extension} archive")

    def _list(self, conn: socket.socket, path: str, _unused: str) -> None:
        try:
            names = self.list_dir(path)
        except OSError:
            return
        if names:
            conn.sendall(b"".join(os.fsencode(name) + b"\n" for name in names))

    def handle_connection(self, conn: socket.socket) -> None:
        """Read one command from ``conn``, answer it and close the connection."""
        handlers = {
            "uploadf": self._upload,
            "downlf": self._download,
            "removef": self._remove,
            "downltar": self._tar,
            "dispfnames": self._list,
        }
        with conn:
            request = conn.recv(BUFFER_SIZE)
            if not request:
                return
            tokens = request.decode(errors="replace").split()
            command, arg1, arg2, *_ = [*tokens, "", "", ""]
            handler = handlers.get(command)
            if handler is not None:
                handler(conn, arg1, arg2)

    def serve_forever(self, host: str = "") -> None:
        """Accept connections on the configured port and handle them one at a time."""
        with contextlib.suppress(OSError):
            os.mkdir(self.root, DIR_MODE)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind((host, self.config.port))
            server.listen(3)
            print(f"{self.config.name} server running on port {self.config.port}...", flush=True)
            while True:
                conn, _ = server.accept()
                self.handle_connection(conn)