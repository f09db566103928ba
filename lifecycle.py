"""Startup, signal handling and two-stage shutdown of the HTTP server."""
import asyncio
import enum
import logging
import signal

from server import TimeServer, bind_listener

log = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class State(enum.Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class ServerLifecycle:
    """Run a Flask app until the listener dies or a shutdown signal arrives.

    The serve loop runs on an executor thread while the event loop waits on
    whichever happens first: the serve loop finishing (always a failure) or
    a shutdown request. A shutdown drains for up to ``SHUTDOWN_TIMEOUT``
    seconds, then closes whatever is left.
    """

    def __init__(self, app):
        self.app = app
        self.state = State.STARTING
        self.server = None
        self._loop = None
        self._shutdown = None

    @property
    def port(self):
        return self.server.port if self.server is not None else None

    def request_shutdown(self, signum=signal.SIGTERM):
        """Ask a running lifecycle to shut down; safe from any thread.

        Raises ``RuntimeError`` when called before :meth:`run` has started.
        """
        if self._loop is None:
            raise RuntimeError("lifecycle is not running")
        self._loop.call_soon_threadsafe(self._on_signal, signum)

    def _on_signal(self, signum):
        # Only the first request counts
        if not self._shutdown.done():
            self._shutdown.set_result(signum)

    def _start(self):
        cfg = self.app.config
        sock = bind_listener(cfg["HOST"], cfg["PORT"])
        try:
            return TimeServer(
                sock,
                self.app,
                read_timeout=cfg["READ_TIMEOUT"],
                write_timeout=cfg["WRITE_TIMEOUT"],
                idle_timeout=cfg["IDLE_TIMEOUT"],
            )
        finally:
            # TimeServer holds its own duplicate of the descriptor
            sock.close()

    async def run(self) -> int:
        """Serve until stopped and return the process exit code."""
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._shutdown = loop.create_future()

        try:
            self.server = self._start()
        except OSError as e:
            log.error("Error starting server: %s", e)
            self.state = State.STOPPED
            return 1

        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self._on_signal, sig)
        try:
            return await self._supervise(loop)
        finally:
            for sig in SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)
            self.state = State.STOPPED

    async def _supervise(self, loop) -> int:
        serving = loop.run_in_executor(None, self.server.serve_forever)
        self.state = State.SERVING
        log.info("SimpleTimeService starting on port %s", self.server.port)

        await asyncio.wait({serving, self._shutdown}, return_when=asyncio.FIRST_COMPLETED)
        if not self._shutdown.done():
            err = serving.exception() or "listener closed unexpectedly"
            log.error("Error starting server: %s", err)
            self.server.server_close()
            return 1

        log.info("Received signal %s, starting shutdown", signal.Signals(self._shutdown.result()).name)
        self.state = State.DRAINING
        timeout = self.app.config["SHUTDOWN_TIMEOUT"]
        try:
            drained = await loop.run_in_executor(None, self.server.drain, timeout)
        except OSError as e:
            log.error("Error during shutdown: %s", e)
            drained = False

        if drained:
            log.info("Server stopped gracefully")
            return 0

        log.warning("Connections still open after %ss, forcing close", timeout)
        try:
            self.server.force_close()
        except OSError as e:
            log.critical("Could not stop server gracefully: %s", e)
            return 1
        log.info("Server closed")
        return 0
