import dataclasses
import io
import socket
import tarfile

import pytest

from splitdfs.secondary import SecondaryConfig, SecondaryServer


@pytest.fixture
def config():
    return SecondaryConfig(
        name="S2",
        port=1202,
        extension=".pdf",
        label="PDF",
        download_type_error="Error: Not a PDF file or invalid extension.\n",
        not_found_error="Error: File not found on server.\n",
        remove_type_error="Error: Not a PDF file.\n",
    )


@pytest.fixture
def server(config, tmp_path):
    return SecondaryServer(config, tmp_path)


def _exchange(server, request):
    client, peer = socket.socketpair()
    with client:
        client.sendall(request)
        client.shutdown(socket.SHUT_WR)
        server.handle_connection(peer)
        chunks = []
        while chunk := client.recv(65536):
            chunks.append(chunk)
    return b"".join(chunks)


def test_remove_messages_follow_label(config):
    assert config.remove_success == "PDF file removed successfully.\n"
    assert config.remove_failure == "Error: Could not remove PDF file.\n"


def test_target_dir_with_and_without_marker(server, tmp_path):
    expected = tmp_path / "S2" / "docs"
    assert server.target_dir("~S2/docs") == expected
    assert server.target_dir("/docs") == expected


def test_file_path_with_and_without_marker(server, tmp_path):
    expected = tmp_path / "S2" / "a.pdf"
    assert server.file_path("~S2/a.pdf") == expected
    assert server.file_path("a.pdf") == expected


def test_store_writes_all_chunks(server, tmp_path):
    chunks = [b"first-", b"second-", b"third"]
    path = server.store("report.pdf", "~S2/in/deep", chunks)
    assert path == tmp_path / "S2" / "in" / "deep" / "report.pdf"
    assert path.read_bytes() == b"".join(chunks)


def test_list_dir_only_regular_files_of_type(server, tmp_path):
    docs = tmp_path / "S2" / "docs"
    docs.mkdir(parents=True)
    (docs / "b.pdf").write_bytes(b"b")
    (docs / "a.pdf").write_bytes(b"a")
    (docs / "c.txt").write_bytes(b"c")
    (docs / "folder.pdf").mkdir()
    assert sorted(server.list_dir("~S2/docs")) == ["a.pdf", "b.pdf"]


def test_list_dir_missing_raises(server):
    with pytest.raises(OSError):
        server.list_dir("~S2/nowhere")


def test_remove_deletes_file(server, tmp_path):
    target = server.store("gone.pdf", "~S2", [b"x"])
    removed = server.remove("~S2/gone.pdf")
    assert removed == target
    assert not target.exists()


def test_remove_wrong_type_raises(server):
    with pytest.raises(ValueError):
        server.remove("~S2/notes.txt")


def test_remove_missing_raises(server):
    with pytest.raises(FileNotFoundError):
        server.remove("~S2/absent.pdf")


def test_archive_contains_only_served_type(server):
    server.store("one.pdf", "~S2/a", [b"one"])
    server.store("two.pdf", "~S2/b", [b"two"])
    server.store("skip.txt", "~S2", [b"skip"])
    with tarfile.open(fileobj=io.BytesIO(server.archive())) as archive:
        names = sorted(name.rsplit("/", 1)[-1] for name in archive.getnames())
    assert names == ["one.pdf", "two.pdf"]


def test_archive_empty_without_files(server):
    assert server.archive() == b""


def test_connection_upload_creates_file(server, tmp_path):
    assert _exchange(server, b"uploadf report.pdf ~S2/in") == b""
    assert (tmp_path / "S2" / "in" / "report.pdf").read_bytes() == b""


def test_connection_download_streams_content(server):
    content = bytes(range(256)) * 40
    server.store("big.pdf", "~S2", [content])
    assert _exchange(server, b"downlf ~S2/big.pdf") == content


def test_connection_download_not_found(server, config):
    response = _exchange(server, b"downlf ~S2/absent.pdf")
    assert response == config.not_found_error.encode()


def test_connection_download_wrong_type(server, config):
    response = _exchange(server, b"downlf ~S2/notes.txt")
    assert response == config.download_type_error.encode()


def test_connection_remove_reports_success(server, config, tmp_path):
    server.store("x.pdf", "~S2", [b"x"])
    assert _exchange(server, b"removef ~S2/x.pdf") == config.remove_success.encode()
    assert not (tmp_path / "S2" / "x.pdf").exists()


def test_connection_remove_reports_failure(server, config):
    assert _exchange(server, b"removef ~S2/none.pdf") == config.remove_failure.encode()


def test_connection_remove_wrong_type(server, config):
    assert _exchange(server, b"removef ~S2/a.zip") == config.remove_type_error.encode()


def test_connection_list(server):
    server.store("b.pdf", "~S2/docs", [b"b"])
    server.store("a.pdf", "~S2/docs", [b"a"])
    server.store("c.txt", "~S2/docs", [b"c"])
    lines = _exchange(server, b"dispfnames ~S2/docs").decode().splitlines()
    assert sorted(lines) == ["a.pdf", "b.pdf"]


def test_connection_list_missing_dir_is_silent(server):
    assert _exchange(server, b"dispfnames ~S2/none") == b""


def test_connection_tar(server):
    server.store("doc.pdf", "~S2", [b"pdf data"])
    data = _exchange(server, b"downltar .pdf")
    with tarfile.open(fileobj=io.BytesIO(data)) as archive:
        member = archive.getmembers()[0]
        assert member.name.endswith("/doc.pdf")
        assert archive.extractfile(member).read() == b"pdf data"


def test_connection_tar_wrong_type_silent_by_default(server):
    server.store("doc.pdf", "~S2", [b"pdf data"])
    assert _exchange(server, b"downltar .txt") == b""


def test_connection_tar_wrong_type_message(config, tmp_path):
    message = "Error: wrong archive type.\n"
    server = SecondaryServer(dataclasses.replace(config, archive_type_error=message), tmp_path)
    assert _exchange(server, b"downltar .c") == message.encode()


def test_connection_tar_disabled(config, tmp_path):
    server = SecondaryServer(dataclasses.replace(config, archive=False), tmp_path)
    server.store("doc.pdf", "~S2", [b"pdf data"])
    assert _exchange(server, b"downltar .pdf") == b""


def test_connection_unknown_command_is_silent(server):
    assert _exchange(server, b"bogus ~S2/a.pdf") == b""