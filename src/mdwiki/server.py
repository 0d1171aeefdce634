"""生成済みの HTML ツリーを配信する簡易 HTTP サーバー。"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import unquote, urlsplit

from .config import INDEX_NAME, ServeConfig

logger = logging.getLogger(__name__)


NOT_FOUND_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>404 Not Found</title></head>
<body><h1>404 Not Found</h1><p>The requested page does not exist.</p></body>
</html>
"""

SERVER_ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>500 Internal Server Error</title></head>
<body><h1>500 Internal Server Error</h1><p>The requested page could not be read.</p></body>
</html>
"""


def resolve_request_path(root: Path, request_path: str) -> Path | None:
    """リクエストパスを出力ルート配下のファイルへ解決します。ルート外を指す場合は None。"""

    raw = unquote(urlsplit(request_path).path)
    parts = [part for part in posixpath.normpath("/" + raw).split("/") if part and part != "."]
    if ".." in parts:
        return None
    candidate = root.joinpath(*parts)
    if candidate.is_dir():
        candidate = candidate / INDEX_NAME
    try:
        candidate.resolve().relative_to(root.resolve())
    except (OSError, ValueError):
        return None
    return candidate


class WikiRequestHandler(BaseHTTPRequestHandler):
    """出力ルートのファイルをそのまま返すリクエストハンドラー。"""

    root: Path = Path(".")
    server_version = "mdwiki"

    def do_GET(self) -> None:
        self._respond(send_body=True)

    def do_HEAD(self) -> None:
        self._respond(send_body=False)

    def _respond(self, *, send_body: bool) -> None:
        path = resolve_request_path(self.root, self.path)
        if path is None or not path.is_file():
            self._send(HTTPStatus.NOT_FOUND, NOT_FOUND_PAGE.encode("utf-8"), "text/html; charset=utf-8", send_body)
            return
        try:
            body = path.read_bytes()
        except OSError:
            logger.error("ファイルを読み込めませんでした: %s", path, exc_info=True)
            self._send(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                SERVER_ERROR_PAGE.encode("utf-8"),
                "text/html; charset=utf-8",
                send_body,
            )
            return
        self._send(HTTPStatus.OK, body, _guess_content_type(path), send_body)

    def _send(self, status: HTTPStatus, body: bytes, content_type: str, send_body: bool) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if send_body:
            self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:
        logger.info("%s - %s", self.address_string(), format % args)


def _guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None:
        return "application/octet-stream"
    if content_type.startswith("text/"):
        return content_type + "; charset=utf-8"
    return content_type


def create_server(config: ServeConfig) -> ThreadingHTTPServer:
    handler = type("BoundWikiRequestHandler", (WikiRequestHandler,), {"root": config.root})
    return ThreadingHTTPServer((config.host, config.port), handler)


def serve(config: ServeConfig) -> None:
    """Ctrl+C で停止するまで出力ルートを配信します。"""

    server = create_server(config)
    host, port = server.server_address[:2]
    logger.info("Listening on http://%s:%d", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("サーバーを停止します。")
    finally:
        server.server_close()
