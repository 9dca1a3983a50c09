import codecs
import html
import io
import logging
import mimetypes
import posixpath
import threading
from typing import Optional
from urllib.parse import quote

from flask import Flask, Response, request
from werkzeug.serving import make_server
from werkzeug.wsgi import wrap_file

from infra.interfaces import ZERO_TIME
from static_fs import StaticFileSystem
from vfsgen_utils import allocate_port, normalize_path

logger = logging.getLogger(__name__)
logging.getLogger("werkzeug").setLevel(logging.ERROR)

_SNIFF_LEN = 512
_READDIR_BATCH = 100

_SIGNATURES = [
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x00asm", "application/wasm"),
]
_HTML_TAGS = [
    b"<!doctype html",
    b"<html",
    b"<head",
    b"<script",
    b"<iframe",
    b"<h1",
    b"<div",
    b"<font",
    b"<table",
    b"<a",
    b"<style",
    b"<title",
    b"<b",
    b"<body",
    b"<br",
    b"<p",
    b"<!--",
]
_BINARY_BYTES = frozenset(
    [*range(0x00, 0x09), 0x0B, *range(0x0E, 0x1B), *range(0x1C, 0x20)]
)


def is_gzip_encoding_accepted(accept_encoding: Optional[str]) -> bool:
    """True if the Accept-Encoding header value lists the exact token "gzip"."""
    for v in (accept_encoding or "").split(","):
        if v.strip() == "gzip":
            return True
    return False


def _local_redirect(new_path: str) -> Response:
    """Moved Permanently to a path relative to the request, keeping the query string."""
    query = request.query_string.decode("latin-1")
    if query:
        new_path += "?" + query
    return Response(status=301, headers={"Location": new_path})


def sniff_content_type(head: bytes) -> str:
    """
    Guess a content type from the first bytes of a file: a few well-known signatures,
    HTML and XML markup, otherwise text/plain for UTF-8 text without control bytes.
    """
    for magic, mimetype in _SIGNATURES:
        if head.startswith(magic):
            return mimetype

    text = head.lstrip(b"\t\n\x0c\r ").lower()
    for tag in _HTML_TAGS:
        if text.startswith(tag) and text[len(tag) : len(tag) + 1] in (b" ", b">"):
            return "text/html"
    if text.startswith(b"<?xml"):
        return "text/xml"

    if any(b in _BINARY_BYTES for b in head):
        return "application/octet-stream"
    try:
        # a multi-byte character may be cut at the end of the window
        codecs.getincrementaldecoder("utf-8")().decode(head, final=False)
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain"


def _detect_mimetype(name: str, f) -> str:
    mimetype, _ = mimetypes.guess_type(name)
    if mimetype:
        return mimetype
    head = f.read(_SNIFF_LEN)
    f.seek(0)
    return sniff_content_type(head)


def dir_list(f, name: str) -> Response:
    lines = ["<pre>\n", f'<a href="{normalize_path(name + "/..")}">..</a>\n']
    while True:
        entries = f.readdir(_READDIR_BATCH)
        if not entries:
            break
        for e in sorted(entries, key=lambda e: e.name):
            entry_name = e.name + "/" if e.is_dir else e.name
            # quote keeps '?' and '#' in names part of the path
            lines.append(f'<a href="{quote(entry_name)}">{html.escape(entry_name)}</a>\n')
    lines.append("</pre>\n")
    return Response("".join(lines), mimetype="text/html")


def _content_response(f, info) -> Response:
    if "plain" in request.args:
        mimetype = "text/plain"
    else:
        mimetype = _detect_mimetype(info.name, f)

    gzip_encoded = hasattr(f, "gzip_bytes") and is_gzip_encoding_accepted(
        request.headers.get("Accept-Encoding")
    )
    if gzip_encoded:
        payload = f.gzip_bytes()
        f.close()
        body, size = io.BytesIO(payload), len(payload)
    else:
        body, size = f, info.size

    rv = Response(
        wrap_file(request.environ, body), mimetype=mimetype, direct_passthrough=True
    )
    if gzip_encoded:
        rv.headers["Content-Encoding"] = "gzip"
    rv.content_length = size
    if info.mod_time != ZERO_TIME:
        rv.last_modified = info.mod_time
    return rv.make_conditional(request.environ, accept_ranges=True, complete_length=size)


def serve_file(fs: StaticFileSystem, url_path: str) -> Response:
    name = normalize_path(url_path)
    try:
        f = fs.open(name)
    except OSError as e:
        logger.warning(f"Failed to open {name}: {e}")
        return Response(str(e), 500, mimetype="text/plain")

    streaming = False
    try:
        info = f.stat()

        # canonical paths: directories end with '/', files do not
        base = posixpath.basename(url_path.rstrip("/"))
        if info.is_dir and not url_path.endswith("/"):
            return _local_redirect(base + "/")
        if not info.is_dir and url_path.endswith("/"):
            return _local_redirect("../" + base)

        if info.is_dir:
            return dir_list(f, name)

        rv = _content_response(f, info)
        streaming = True
        return rv
    finally:
        if not streaming:
            f.close()


def create_app(fs: StaticFileSystem) -> Flask:
    app = Flask(__name__)
    app.url_map.merge_slashes = False

    @app.route("/", defaults={"path": ""}, methods=["GET"], strict_slashes=False)
    @app.route("/<path:path>", methods=["GET"], strict_slashes=False)
    def catch_all(path):
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"GET {request.full_path}")
        url_path = request.path if request.path.startswith("/") else "/" + request.path
        return serve_file(fs, url_path)

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"500 error: {error}")
        return Response("Internal Server Error", 500)

    return app


class GzipFileServer:
    """
    Serves a StaticFileSystem over HTTP. Compressed files are sent as-is to clients
    accepting gzip, and decompressed on the fly for everyone else.
    """

    def __init__(self, fs: StaticFileSystem, port: int = None, config: dict = None):
        self.__port = port if port else allocate_port()
        self.__config = config or {}
        self.app = create_app(fs)
        self._server = None
        self._thread = None

    @property
    def port(self) -> int:
        return self.__port

    @property
    def name(self) -> Optional[str]:
        return self.__config.get("name")

    def start(self):
        host = self.__config.get("host", "0.0.0.0")
        self._server = make_server(host, self.port, self.app, threaded=True)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Serving {self.name or 'static filesystem'} on port {self.port}")

    def stop(self):
        if self._server:
            self._server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1)
        logger.info(f"Stopped server on port {self.port}")
