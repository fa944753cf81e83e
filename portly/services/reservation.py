"""Holds a port by keeping a never-accepting listener bound to it"""

import logging
import socket
import threading
from typing import Optional

from portly.errors import BindError
from portly.utils.port_probe import DEFAULT_HOST, bind_listener

logger = logging.getLogger(__name__)


class PortReservation:
    """
    An exclusively owned listening socket occupying a port.

    The socket is never accepted on. Its only job is to make other
    processes' binds on the same port fail until release() is called.
    """

    def __init__(self, port: int, host: str = DEFAULT_HOST, sock: Optional[socket.socket] = None):
        self.port = port
        self.host = host
        self._sock = sock
        self._lock = threading.Lock()

    @classmethod
    def hold(cls, port: int, host: str = DEFAULT_HOST) -> "PortReservation":
        """
        Bind and listen on the port.

        Raises:
            BindError: If the port is already bound by someone else
        """
        try:
            sock = bind_listener(host, port)
        except (OSError, OverflowError) as e:
            raise BindError(port, str(e)) from e

        logger.debug(f"Holding port {port} on {host}")
        return cls(port, host, sock)

    @property
    def is_held(self) -> bool:
        return self._sock is not None

    def release(self) -> None:
        """Close the listener. Safe to call any number of times."""
        with self._lock:
            sock, self._sock = self._sock, None

        if sock is None:
            return

        sock.close()
        logger.info(f"Released port {self.port}")

    def __enter__(self) -> "PortReservation":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "held" if self.is_held else "released"
        return f"PortReservation(port={self.port}, host={self.host!r}, {state})"
