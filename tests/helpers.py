import socket
import threading
import time
import urllib.request

from server import TimeServer, bind_listener


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


def fetch(port, path, result):
    """GET ``path`` and record the status and body, or the error."""
    try:
        with urllib.request.urlopen(f"http://127.0.0.1:{port}{path}", timeout=5) as resp:
            result["status"] = resp.status
            result["body"] = resp.read()
    except OSError as e:
        result["error"] = e


def assert_refused(port, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            conn = socket.create_connection(("127.0.0.1", port), timeout=1)
        except (ConnectionRefusedError, ConnectionResetError):
            return
        conn.close()
        time.sleep(0.05)
    raise AssertionError(f"port {port} still accepting connections")


def start_server(app, **kwargs):
    sock = bind_listener("127.0.0.1", 0)
    try:
        server = TimeServer(sock, app, **kwargs)
    finally:
        sock.close()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


def read_all(conn):
    data = b""
    while True:
        chunk = conn.recv(4096)
        if not chunk:
            return data
        data += chunk
