"""Free TCP port allocation for test servers."""

import logging
import socket
import threading

from . import server_params
from .errors import ProvisioningError

logger = logging.getLogger(__name__)


def find_free_port(host=None):
    """Ask the kernel for a port that is currently unused on *host*."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host or server_params.MYSQL_HOST, 0))
        return s.getsockname()[1]


class PortAllocator:
    """Hands out free ports, never the same one twice while it is reserved.

    The kernel may return a port again as soon as the probing socket is
    closed, long before the server we hand it to gets around to binding it.
    Reservations close that window between instances of this process.
    """

    def __init__(self, max_attempts=100):
        self.max_attempts = max_attempts
        self._reserved = set()
        self._lock = threading.Lock()

    def allocate(self):
        with self._lock:
            for _ in range(self.max_attempts):
                try:
                    port = find_free_port()
                except OSError as e:
                    raise ProvisioningError(f"could not allocate a port: {e}") from e
                if port not in self._reserved:
                    self._reserved.add(port)
                    logger.debug("allocated port %d", port)
                    return port
        raise ProvisioningError(
            f"no unreserved port found after {self.max_attempts} attempts"
        )

    def release(self, port):
        with self._lock:
            self._reserved.discard(port)

    def reserved(self):
        with self._lock:
            return set(self._reserved)


_allocator = PortAllocator()


def allocate_port():
    return _allocator.allocate()


def release_port(port):
    _allocator.release(port)
