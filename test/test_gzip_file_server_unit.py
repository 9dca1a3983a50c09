import gzip

import pytest

from conftest import COMPRESSIBLE, INCOMPRESSIBLE, TINY
from gzip_file_server import (
    create_app,
    is_gzip_encoding_accepted,
    sniff_content_type,
)
from infra.os_fs import OSFileSystem
from infra.table_builder import build_table
from static_fs import StaticFileSystem


@pytest.fixture
def client(static_fs):
    app = create_app(static_fs)
    app.testing = True
    return app.test_client()


@pytest.mark.parametrize(
    "header, accepted",
    [
        ("gzip", True),
        ("gzip, deflate", True),
        ("deflate ,  gzip ", True),
        ("identity", False),
        ("GZIP", False),
        ("x-gzip", False),
        ("", False),
        (None, False),
    ],
)
def test_is_gzip_encoding_accepted(header, accepted):
    assert is_gzip_encoding_accepted(header) is accepted


def test_gzip_accepted_sends_compressed_bytes(client, table):
    response = client.get("/index.html", headers={"Accept-Encoding": "gzip, deflate"})
    assert response.status_code == 200
    assert response.headers["Content-Encoding"] == "gzip"
    assert response.data == table["/index.html"].representation.content
    assert gzip.decompress(response.data) == COMPRESSIBLE
    assert response.headers["Content-Type"].startswith("text/html")


def test_identity_sends_decompressed_bytes(client):
    response = client.get("/index.html", headers={"Accept-Encoding": "identity"})
    assert response.status_code == 200
    assert "Content-Encoding" not in response.headers
    assert response.data == COMPRESSIBLE
    assert int(response.headers["Content-Length"]) == len(COMPRESSIBLE)
    assert "Last-Modified" in response.headers


def test_stored_file_is_never_gzip_encoded(client):
    response = client.get("/random.bin", headers={"Accept-Encoding": "gzip"})
    assert "Content-Encoding" not in response.headers
    assert response.data == INCOMPRESSIBLE
    assert response.headers["Content-Type"] == "application/octet-stream"


def test_range_request_on_compressed_file(client):
    response = client.get(
        "/index.html",
        headers={"Accept-Encoding": "identity", "Range": "bytes=100-104"},
    )
    assert response.status_code == 206
    assert response.data == COMPRESSIBLE[100:105]


def test_plain_query_forces_text_plain(client):
    response = client.get("/index.html?plain")
    assert response.headers["Content-Type"].startswith("text/plain")
    assert response.data == COMPRESSIBLE


def test_directory_without_slash_redirects(client):
    response = client.get("/empty")
    assert response.status_code == 301
    assert response.headers["Location"] == "empty/"


def test_redirect_keeps_query_string(client):
    response = client.get("/empty?sort=name")
    assert response.status_code == 301
    assert response.headers["Location"] == "empty/?sort=name"


def test_file_with_slash_redirects(client):
    response = client.get("/tiny.txt/")
    assert response.status_code == 301
    assert response.headers["Location"] == "../tiny.txt"


def test_file_content(client):
    response = client.get("/tiny.txt")
    assert response.status_code == 200
    assert response.data == TINY
    assert response.headers["Content-Type"].startswith("text/plain")


def test_directory_listing(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "text/html; charset=utf-8"
    assert response.get_data(as_text=True) == (
        "<pre>\n"
        '<a href="/">..</a>\n'
        '<a href="empty/">empty/</a>\n'
        '<a href="index.html">index.html</a>\n'
        '<a href="random.bin">random.bin</a>\n'
        '<a href="sub%20dir/">sub dir/</a>\n'
        '<a href="tiny.txt">tiny.txt</a>\n'
        "</pre>\n"
    )


def test_subdirectory_listing_parent_link(client):
    text = client.get("/sub dir/").get_data(as_text=True)
    assert text.splitlines()[1] == '<a href="/">..</a>'
    assert '<a href="a.txt">a.txt</a>' in text


def test_missing_file_is_server_error(client):
    response = client.get("/missing")
    assert response.status_code == 500


def test_directory_listing_escapes_names(tmp_path):
    root = tmp_path / "escaped"
    (root / "x y&z").mkdir(parents=True)
    (root / "a<b>&c").write_bytes(b"a")
    (root / "q?#").write_bytes(b"q")
    app = create_app(StaticFileSystem(build_table(OSFileSystem(root))))
    app.testing = True
    client = app.test_client()

    assert client.get("/").get_data(as_text=True) == (
        "<pre>\n"
        '<a href="/">..</a>\n'
        '<a href="a%3Cb%3E%26c">a&lt;b&gt;&amp;c</a>\n'
        '<a href="q%3F%23">q?#</a>\n'
        '<a href="x%20y%26z/">x y&amp;z/</a>\n'
        "</pre>\n"
    )
    assert client.get("/q%3F%23").data == b"q"


@pytest.mark.parametrize(
    "head, content_type",
    [
        (b"%PDF-1.7\n", "application/pdf"),
        (b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR", "image/png"),
        (b"GIF89a\x01\x00", "image/gif"),
        (b"\xff\xd8\xff\xe0\x00\x10JFIF", "image/jpeg"),
        (b"  \n<!DOCTYPE HTML>\n<html>", "text/html"),
        (b"<p>hello</p>", "text/html"),
        (b"<pre>not markup</pre>", "text/plain"),
        (b'<?xml version="1.0"?><a/>', "text/xml"),
        ("héllo wörld".encode(), "text/plain"),
        ("abcé".encode()[:-1], "text/plain"),
        (b"", "text/plain"),
        (b"\x00\x01\x02\x03", "application/octet-stream"),
        (b"\xff\xfe\xfd", "application/octet-stream"),
    ],
)
def test_sniff_content_type(head, content_type):
    assert sniff_content_type(head) == content_type


def test_extensionless_html_is_sniffed(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    (root / "README").write_bytes(b"<html><body>hi</body></html>")
    app = create_app(StaticFileSystem(build_table(OSFileSystem(root))))
    app.testing = True

    response = app.test_client().get("/README")
    assert response.mimetype == "text/html"
    assert response.data == b"<html><body>hi</body></html>"
