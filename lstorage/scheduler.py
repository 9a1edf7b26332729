"""HTTP front end of the scheduler extender."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .extender import Predicate, Prioritize
from .lister import LocalStorageLister

log = logging.getLogger(__name__)

VERSION = "v1.0.1"
VERSION_PATH = "/version"
API_PREFIX = "/localstorage-scheduler"
PREDICATE_PREFIX = API_PREFIX + "/filter"
PRIORITIZE_PREFIX = API_PREFIX + "/prioritize"

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _decode_args(body: bytes) -> dict[str, Any]:
    """Decode the first JSON value in ``body`` as extender arguments."""
    text = body.decode("utf-8").lstrip()
    if not text:
        raise ValueError("EOF")
    value, _ = json.JSONDecoder().raw_decode(text)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(
            f"cannot unmarshal {type(value).__name__} into extender arguments"
        )
    return value


def _encode(value: Any) -> tuple[int, bytes]:
    try:
        return HTTPStatus.OK, json.dumps(value, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        return HTTPStatus.INTERNAL_SERVER_ERROR, f"{{'error':'{exc}'}}".encode("utf-8")


class ScheduleExtender:
    """Serves the filter and prioritize endpoints of the scheduler extender."""

    def __init__(
        self,
        ls_lister: LocalStorageLister | None,
        pvc_lister: Any = None,
        sc_lister: Any = None,
    ) -> None:
        self.ls_lister = ls_lister
        self.pvc_lister = pvc_lister
        self.sc_lister = sc_lister
        self.predicate = Predicate(ls_lister, pvc_lister, sc_lister)
        self.prioritize = Prioritize(ls_lister)

    def version(self) -> str:
        return VERSION

    def do_predicate(self, body: bytes) -> tuple[int, bytes]:
        """Handle a filter request body; return the status code and JSON body."""
        log.info("Starting handle localstorage scheduler predicate")
        try:
            args = _decode_args(body)
        except (ValueError, UnicodeDecodeError) as exc:
            result: Any = {"error": str(exc)}
        else:
            result = self.predicate.handler(args)
        return _encode(result)

    def do_prioritize(self, body: bytes) -> tuple[int, bytes]:
        """Handle a prioritize request body; return the status code and JSON body."""
        log.info("Starting handle localstorage scheduler prioritize")
        try:
            args = _decode_args(body)
        except (ValueError, UnicodeDecodeError):
            result: Any = []
        else:
            result = self.prioritize.handler(args)
        return _encode(result)

    def make_server(self, host: str, port: int) -> ThreadingHTTPServer:
        """Build, but do not start, an HTTP server bound to ``host:port``."""
        server = _ExtenderServer((host, port), _RequestHandler)
        server.extender = self
        return server

    def run(self, addr: str) -> None:
        """Serve on ``addr`` (``host:port`` or ``:port``) until interrupted."""
        host, _, port = addr.rpartition(":")
        if not port.isdigit():
            raise ValueError(f"invalid listen address: {addr}")
        log.info("starting localstorage scheduler extender server on %s", addr)
        with self.make_server(host, int(port)) as server:
            server.serve_forever()


class _ExtenderServer(ThreadingHTTPServer):
    daemon_threads = True
    extender: ScheduleExtender


class _RequestHandler(BaseHTTPRequestHandler):
    server: _ExtenderServer

    def _routes(self) -> dict[str, dict[str, Any]]:
        extender = self.server.extender
        return {
            VERSION_PATH: {
                "GET": lambda body: (
                    HTTPStatus.OK,
                    extender.version().encode("utf-8"),
                    TEXT_CONTENT_TYPE,
                )
            },
            PREDICATE_PREFIX: {
                "POST": lambda body: (*extender.do_predicate(body), JSON_CONTENT_TYPE)
            },
            PRIORITIZE_PREFIX: {
                "POST": lambda body: (*extender.do_prioritize(body), JSON_CONTENT_TYPE)
            },
        }

    def _send(self, status: int, body: bytes, content_type: str, **headers: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for name, value in headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def _dispatch(self) -> None:
        path = self.path.split("?", 1)[0]
        methods = self._routes().get(path)
        if methods is None:
            self._send(HTTPStatus.NOT_FOUND, b"404 page not found\n", TEXT_CONTENT_TYPE)
            return
        route = methods.get(self.command)
        if route is None:
            self._send(
                HTTPStatus.METHOD_NOT_ALLOWED,
                b"Method Not Allowed\n",
                TEXT_CONTENT_TYPE,
                Allow=", ".join(sorted(methods)),
            )
            return
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length > 0 else b""
        try:
            status, payload, content_type = route(body)
        except Exception:
            log.exception("request to %s failed", path)
            self._send(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                b"Internal Server Error\n",
                TEXT_CONTENT_TYPE,
            )
            return
        self._send(status, payload, content_type)

    do_GET = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch
    do_DELETE = _dispatch
    do_PATCH = _dispatch

    def log_message(self, format: str, *args: Any) -> None:
        log.debug("%s - %s", self.address_string(), format % args)