"""Threaded WSGI server that knows how to drain.

Werkzeug's :class:`~werkzeug.serving.ThreadedWSGIServer` runs one daemon
thread per connection. :class:`TimeServer` adds bookkeeping of open
connections so a shutdown can wait for busy ones and hang up idle
keep-alive ones, and so anything left after the deadline can be cut.
"""
import logging
import socket
import threading
import time
from contextlib import suppress

from werkzeug.serving import ThreadedWSGIServer, WSGIRequestHandler

log = logging.getLogger(__name__)

# Connection states
NEW = "new"
IDLE = "idle"
BUSY = "busy"

# Seconds a connection may stay silent after accept before a drain hangs it up
NEW_CONN_GRACE = 5.0
DRAIN_POLL_INTERVAL = 0.1


def bind_listener(host: str, port) -> socket.socket:
    """Bind and listen on ``host:port``. Raises ``OSError`` on failure."""
    family, type_, proto, _, addr = socket.getaddrinfo(
        host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
    )[0]
    sock = socket.socket(family, type_, proto)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(addr)
        sock.listen(socket.SOMAXCONN)
    except OSError:
        sock.close()
        raise
    return sock


def _hang_up(conn: socket.socket) -> None:
    # The handler thread may have closed it already
    with suppress(OSError):
        conn.shutdown(socket.SHUT_RDWR)

class TimeRequestHandler(WSGIRequestHandler):
    server: "TimeServer"

    def setup(self):
        # StreamRequestHandler applies this to the connection
        self.timeout = self.server.read_timeout
        super().setup()

    def handle_one_request(self):
        # Wait for the first byte of a request without consuming it
        if not self.rfile.peek(1):
            self.close_connection = True
            return
        self.server.mark_busy(self.connection)
        self.connection.settimeout(self.server.read_timeout)
        try:
            super().handle_one_request()
        finally:
            if self.server.mark_idle(self.connection):
                self.connection.settimeout(self.server.idle_timeout)
            else:
                self.close_connection = True

    def run_wsgi(self):
        self.connection.settimeout(self.server.write_timeout)
        super().run_wsgi()

    def log_request(self, code="-", size="-"):
        # RequestLogger writes the access line
        pass


class TimeServer(ThreadedWSGIServer):
    def __init__(
        self,
        sock,
        app,
        read_timeout=15,
        write_timeout=15,
        idle_timeout=60,
        new_conn_grace=NEW_CONN_GRACE,
    ):
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.idle_timeout = idle_timeout
        self.new_conn_grace = new_conn_grace
        self._cond = threading.Condition()
        # connection -> [state, accepted_at]
        self._conns = {}
        self._draining = False
        host, port = sock.getsockname()[:2]
        super().__init__(host, port, app, handler=TimeRequestHandler, fd=sock.fileno())

    def process_request(self, request, client_address):
        with self._cond:
            self._conns[request] = [NEW, time.monotonic()]
        super().process_request(request, client_address)

    def shutdown_request(self, request):
        with self._cond:
            self._conns.pop(request, None)
            self._cond.notify_all()
        super().shutdown_request(request)

    def mark_busy(self, conn):
        with self._cond:
            self._conns[conn][0] = BUSY

    def mark_idle(self, conn) -> bool:
        """Flag ``conn`` idle; returns False once draining has begun."""
        with self._cond:
            self._conns[conn][0] = IDLE
            return not self._draining

    @property
    def open_connections(self) -> int:
        with self._cond:
            return len(self._conns)

    @property
    def busy_connections(self) -> int:
        with self._cond:
            return sum(1 for state, _ in self._conns.values() if state == BUSY)

    @property
    def listening(self) -> bool:
        return self.socket.fileno() != -1

    def _hang_up_quiet(self):
        now = time.monotonic()
        for conn, (state, accepted_at) in self._conns.items():
            if state == IDLE or (state == NEW and now - accepted_at >= self.new_conn_grace):
                _hang_up(conn)

    def drain(self, timeout: float) -> bool:
        """Stop accepting and wait up to ``timeout`` seconds for open connections.

        Idle keep-alive connections are hung up right away, connections
        that have not sent anything yet once they are ``new_conn_grace``
        seconds old. Returns True when every connection finished in time.
        """
        deadline = time.monotonic() + timeout
        self.shutdown()
        self.server_close()
        with self._cond:
            self._draining = True
            log.debug("draining %d connection(s)", len(self._conns))
            while True:
                self._hang_up_quiet()
                if not self._conns:
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(min(remaining, DRAIN_POLL_INTERVAL))

    def force_close(self) -> None:
        """Close the listener and cut every remaining connection."""
        self.socket.close()
        with self._cond:
            conns = list(self._conns)
        for conn in conns:
            _hang_up(conn)
            with suppress(OSError):
                conn.close()
        log.debug("closed %d connection(s)", len(conns))
