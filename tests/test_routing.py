import socket
import threading

import pytest

from splitdfs.routing import (
    Backend,
    backend_for_extension,
    forwarded_path,
    query_backend,
)
from splitdfs.servers import build_server


def _dead_port():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


def _serve_once(handler):
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]

    def run():
        with listener:
            conn, _ = listener.accept()
            handler(conn)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return port, thread


def test_known_extensions_map_to_source_ports():
    assert backend_for_extension(".pdf") == Backend("S2", 1202, ".pdf")
    assert backend_for_extension(".txt") == Backend("S3", 1203, ".txt")
    assert backend_for_extension(".zip") == Backend("S4", 1206, ".zip")


@pytest.mark.parametrize("extension", [".c", ".doc", ""])
def test_unrouted_extensions(extension):
    assert backend_for_extension(extension) is None


def test_forwarded_path_rewrites_prefix():
    backend = Backend("S3", 1203, ".txt")
    assert forwarded_path("~S1/notes/a.txt", backend) == "~S3/notes/a.txt"


def test_forwarded_path_keeps_other_paths():
    backend = Backend("S2", 1202, ".pdf")
    assert forwarded_path("docs/a.pdf", backend) == "docs/a.pdf"


def test_query_backend_returns_whole_reply():
    def handler(conn):
        with conn:
            command = conn.recv(4096)
            conn.sendall(b"got:" + command)

    port, thread = _serve_once(handler)
    reply = query_backend("127.0.0.1", Backend("S2", port, ".pdf"), "dispfnames ~S2/x")
    thread.join(5)
    assert reply == b"got:dispfnames ~S2/x"


def test_query_backend_against_secondary(tmp_path):
    notes = tmp_path / "S3" / "notes"
    notes.mkdir(parents=True)
    (notes / "n.txt").write_text("hello")
    server = build_server("S3", tmp_path)
    port, thread = _serve_once(server.handle_connection)
    reply = query_backend("127.0.0.1", Backend("S3", port, ".txt"), "dispfnames ~S3/notes")
    thread.join(5)
    assert reply == b"n.txt\n"


def test_query_backend_unreachable():
    with pytest.raises(OSError):
        query_backend("127.0.0.1", Backend("S2", _dead_port(), ".pdf"), "dispfnames x")