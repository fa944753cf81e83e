"""Bind-based checks for whether a TCP port is free on this host"""

import logging
import os
import socket

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
PROBE_TIMEOUT = 1.0


def bind_listener(host: str, port: int, backlog: int = 1, timeout: float | None = None) -> socket.socket:
    """
    Bind and listen on (host, port).

    Both the probe and the reservation go through here so that a port the
    probe calls free is one the reservation can actually bind.

    Raises:
        OSError: If the address cannot be bound
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if os.name == "posix":
            # Lets TIME_WAIT leftovers rebind; live listeners still conflict
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if timeout is not None:
            sock.settimeout(timeout)
        sock.bind((host, port))
        sock.listen(backlog)
    except BaseException:
        sock.close()
        raise
    return sock


def is_port_in_use(port: int, host: str = DEFAULT_HOST, timeout: float = PROBE_TIMEOUT) -> bool:
    """Return True if binding (host, port) fails for any reason"""
    try:
        sock = bind_listener(host, port, timeout=timeout)
    except (OSError, OverflowError) as e:
        logger.debug(f"Port {port} on {host} is in use: {e}")
        return True
    sock.close()
    return False
