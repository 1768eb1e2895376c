"""Which secondary server keeps which file type, and how requests reach it."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from splitdfs.fsutil import BUFFER_SIZE, connect_to_server, rewrite_prefix

PRIMARY_TAG = "S1"


@dataclass(frozen=True)
class Backend:
    """A secondary server: its name, TCP port and the extension it stores."""

    name: str
    port: int
    extension: str


DEFAULT_BACKENDS: tuple[Backend, ...] = (
    Backend("S2", 1202, ".pdf"),
    Backend("S3", 1203, ".txt"),
    Backend("S4", 1206, ".zip"),
)


def backend_for_extension(extension: str) -> Backend | None:
    """Return the default backend storing ``extension``, or ``None`` if none does."""
    for backend in DEFAULT_BACKENDS:
        if backend.extension == extension:
            return backend
    return None


def forwarded_path(path: str, backend: Backend) -> str:
    """Rewrite a leading ``~S1`` in ``path`` to the backend's own prefix."""
    return rewrite_prefix(path, PRIMARY_TAG, backend.name)


def query_backend(host: str, backend: Backend, command: str) -> bytes:
    """Send ``command`` to ``backend`` and return everything it replies until it closes.

    Raises ``OSError`` if the backend cannot be reached.
    """
    with connect_to_server(host, backend.port) as sock:
        sock.sendall(command.encode())
        return b"".join(iter(partial(sock.recv, BUFFER_SIZE), b""))