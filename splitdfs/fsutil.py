"""Filesystem and socket helpers shared by the storage servers."""

from __future__ import annotations

import contextlib
import fnmatch
import io
import os
import socket
import sys
import tarfile
from collections.abc import Iterator
from pathlib import Path

BUFFER_SIZE = 4096
DIR_MODE = 0o755


def home_dir() -> str:
    """Return the user's home directory taken from ``$HOME``."""
    home = os.environ.get("HOME")
    if home is None:
        raise RuntimeError("Cannot get HOME environment")
    return home


def make_directory_from_path(full_file_path: str | os.PathLike[str]) -> None:
    """Create every directory leading up to the file named by ``full_file_path``."""
    text = os.fspath(full_file_path)
    head, sep, _ = text.rpartition("/")
    directory = head if sep else text
    current = ""
    for part in directory.split("/"):
        if not part:
            continue
        current = f"{current}/{part}"
        try:
            os.mkdir(current, DIR_MODE)
        except FileExistsError:
            pass
        except OSError as exc:
            print(f"mkdir error: {exc}", file=sys.stderr)


def make_directory(path: str | os.PathLike[str]) -> None:
    """Create ``path`` and all of its parents, ignoring any failure."""
    text = os.fspath(path)
    prefixes = [text[:index] for index, char in enumerate(text) if char == "/" and index > 0]
    for prefix in (*prefixes, text):
        with contextlib.suppress(OSError):
            os.mkdir(prefix, DIR_MODE)


def resolve_user_path(home: str, path: str, tag: str) -> str:
    """Map ``~<tag>/rest`` to ``<home>/<tag>/rest``; anything else is taken under ``home``."""
    marker = f"~{tag}"
    if path.startswith(marker):
        return f"{home}/{tag}{path[len(marker):]}"
    return f"{home}/{path}"


def rewrite_prefix(path: str, old_tag: str, new_tag: str) -> str:
    """Replace a leading ``~<old_tag>`` with ``~<new_tag>``; other paths are returned unchanged."""
    marker = f"~{old_tag}"
    if path.startswith(marker):
        return f"~{new_tag}{path[len(marker):]}"
    return path


def connect_to_server(host: str, port: int) -> socket.socket:
    """Open a TCP connection to ``host:port``; raises ``OSError`` on failure."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((host, port))
    except OSError:
        sock.close()
        raise
    return sock


def recv_chunks(sock) -> Iterator[bytes]:
    """Yield received chunks until the peer closes or a short chunk ends the transfer."""
    while True:
        chunk = sock.recv(BUFFER_SIZE)
        if not chunk:
            return
        yield chunk
        if len(chunk) < BUFFER_SIZE:
            return


def _matching_files(base: Path, extension: str) -> list[Path]:
    pattern = f"*{extension}"
    matches = []
    for root, dirs, files in os.walk(base):
        dirs.sort()
        for name in sorted(files):
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            path = Path(root) / name
            if path.is_file() and not path.is_symlink():
                matches.append(path)
    return matches


def tar_matching(base: str | os.PathLike[str], extension: str) -> bytes:
    """Return a tar archive of regular files under ``base`` ending in ``extension``.

    Member names are the files' paths with any leading slash removed.
    An empty result means no file matched.
    """
    base_path = Path(base)
    if not base_path.is_dir():
        return b""
    matches = _matching_files(base_path, extension)
    if not matches:
        return b""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.GNU_FORMAT) as archive:
        for path in matches:
            archive.add(path, arcname=str(path).lstrip("/"), recursive=False)
    return buffer.getvalue()