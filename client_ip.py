"""Work out which address a request came from."""


def client_ip(headers, peer: str) -> str:
    """Return the caller's IP for a request.

    ``X-Forwarded-For`` wins (first hop, trimmed), then ``X-Real-IP``,
    then the peer address with its trailing ``:port`` cut off. Header
    values are trusted as sent.

    The port is cut at the last colon, so a bare IPv6 peer such as
    ``::1`` comes back truncated. Render IPv6 peers bracketed (see
    :func:`peer_address`) to avoid that.
    """
    forwarded = headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    idx = peer.rfind(":")
    if idx != -1:
        return peer[:idx]
    return peer


def peer_address(environ) -> str:
    """Render the transport peer of a WSGI request as ``host:port``."""
    host = environ.get("REMOTE_ADDR", "")
    port = environ.get("REMOTE_PORT")
    if not port:
        return host
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"
