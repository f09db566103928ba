import logging
import time
from functools import partial
from urllib.parse import quote

from werkzeug.wsgi import ClosingIterator

from client_ip import peer_address

log = logging.getLogger(__name__)


def request_uri(environ) -> str:
    uri = environ.get("REQUEST_URI")
    if uri:
        return uri
    uri = quote(environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", ""))
    if environ.get("QUERY_STRING"):
        uri += "?" + environ["QUERY_STRING"]
    return uri


class RequestLogger:
    """WSGI middleware writing one access line per request.

    The line goes out once the response body has been handed to the
    server, so the duration covers the whole response.
    """

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        start = time.perf_counter()
        app_iter = self.app(environ, start_response)
        return ClosingIterator(app_iter, partial(self._log, environ, start))

    def _log(self, environ, start):
        elapsed_ms = (time.perf_counter() - start) * 1000
        log.info(
            "%s %s %s - %.3fms",
            environ.get("REQUEST_METHOD", "-"),
            request_uri(environ),
            peer_address(environ),
            elapsed_ms,
        )
