"""Waiting for a server to announce that it accepts connections."""

import collections
import logging
import threading

from .errors import ReadinessError

logger = logging.getLogger(__name__)


class ReadinessDetector:
    """Drains a server's output stream and watches it for a ready marker.

    The stream is consumed on a background thread for as long as it stays
    open, also after the marker was seen, so the server never blocks on a
    full pipe. The last *max_lines* lines are kept (see ``output()``) and,
    when *tee* is a text stream, every line is echoed to it.

    Example::

        detector = ReadinessDetector(proc.stderr, b"ready for connections")
        detector.start()
        detector.wait()
    """

    def __init__(
        self, stream, marker, tee=None, name="mysqld-output", max_lines=1000
    ):
        if not marker:
            raise ValueError("marker must not be empty")
        self.marker = marker
        self._stream = stream
        self._tee = tee
        self._cond = threading.Condition()
        self._ready = False
        self._closed = False
        self._output = collections.deque(maxlen=max_lines)
        self._thread = threading.Thread(target=self._drain, name=name, daemon=True)

    def start(self):
        self._thread.start()
        return self

    @property
    def ready(self):
        with self._cond:
            return self._ready

    def _drain(self):
        keep = len(self.marker) - 1
        tail = b""
        try:
            with self._stream as pipe:
                for chunk in iter(pipe.readline, b""):
                    self._echo(chunk)
                    with self._cond:
                        self._output.append(chunk)
                        # the marker may straddle two reads
                        if not self._ready and self.marker in tail + chunk:
                            self._ready = True
                            self._cond.notify_all()
                    tail = (tail + chunk)[-keep:] if keep else b""
        except (OSError, ValueError) as e:
            # the pipe was closed underneath us during teardown
            logger.debug("stopped reading server output: %s", e)
        finally:
            with self._cond:
                self._closed = True
                self._cond.notify_all()

    def _echo(self, chunk):
        if self._tee is None:
            return
        try:
            self._tee.write(chunk.decode(errors="replace"))
            self._tee.flush()
        except (OSError, ValueError):
            # the caller's stream went away; keep draining regardless
            self._tee = None

    def wait(self, timeout=None):
        """Block until the marker was seen.

        With *timeout* None this waits as long as the stream stays open.
        Raises ReadinessError when the stream ends without the marker (the
        server exited) or when *timeout* seconds pass.
        """
        with self._cond:
            in_time = self._cond.wait_for(lambda: self._ready or self._closed, timeout)
            if self._ready:
                return
            output = b"".join(self._output).decode(errors="replace")

        if not in_time:
            raise ReadinessError(f"server not ready after {timeout}s", output)
        raise ReadinessError("server output ended before it reported ready", output)

    def output(self):
        with self._cond:
            return b"".join(self._output).decode(errors="replace")

    def join(self, timeout=None):
        if self._thread.is_alive():
            self._thread.join(timeout)
