"""Ephemeral mysqld instances for tests.

Each MysqlServer gets its own port and a fresh data directory, so tests (and
parallel groups of tests) never share state. Stopping a server kills the
process and removes every file it created.
"""

import atexit
import enum
import logging
import os
import shutil
import sys
import tempfile
import threading
import time

from . import server_params
from .basedir import get_basedir
from .config import write_config
from .db import connect, create_database, dsn, is_connection_refused
from .errors import ConnectError, MysqlTestError, ProvisioningError, ReadinessError
from .ports import allocate_port, release_port
from .process import kill_process, run_init, start_server_in_background
from .readiness import ReadinessDetector

logger = logging.getLogger(__name__)


class ServerState(enum.IntEnum):
    UNSTARTED = 0
    INITIALIZING = 1
    STARTING = 2
    READY = 3
    STOPPED = 4


class MysqlServer:
    """A unique, single-use instance of mysqld.

    ``start()`` returns once the server logged that it accepts connections;
    ``stop()`` may be called any number of times, also after a failed start.

    Example::

        with MysqlServer() as server:
            conn = server.connect("mydb?autocommit=true")
    """

    def __init__(self, *, extra_settings=None, echo=None):
        self.port = None
        self.data_dir = None
        self.socket = None
        self.defaults_file = None
        self.process = None
        self.state = ServerState.UNSTARTED

        self.extra_settings = extra_settings
        self.echo = server_params.ECHO_SERVER_OUTPUT if echo is None else echo
        self._detector = None
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<MysqlServer port={self.port} state={self.state.name}>"

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc_info):
        self.stop()

    def _advance(self, state):
        with self._lock:
            if self.state is ServerState.STOPPED:
                raise MysqlTestError(f"{self!r} was stopped while starting")
            if state <= self.state:
                raise MysqlTestError(
                    f"{self!r} cannot move from {self.state.name} to {state.name}"
                )
            self.state = state
        logger.debug("port %s: %s", self.port, state.name)

    def start(self):
        """Provision, initialize and start the server, then wait until ready.

        On failure everything created so far is torn down before the error
        propagates.
        """
        if self.state is not ServerState.UNSTARTED:
            raise MysqlTestError(f"{self!r} cannot be started again")

        # Stop the server even when the test run is interrupted and fixture
        # teardown never happens.
        atexit.register(self.stop)
        _register(self)
        try:
            self._start()
        except Exception:
            self.stop()
            raise
        return self

    def _start(self):
        # Environment problems surface before anything is allocated.
        basedir = get_basedir()

        self.port = allocate_port()
        try:
            self.data_dir = tempfile.mkdtemp(
                prefix=server_params.DATA_DIR_PREFIX, dir=server_params.TMP_DIR
            )
        except OSError as e:
            raise ProvisioningError(f"could not create data directory: {e}") from e
        self.socket = os.path.join(self.data_dir, server_params.SOCKET_FILE_NAME)
        self.defaults_file = write_config(
            self.data_dir, self.port, self.socket, self.extra_settings
        )

        self._advance(ServerState.INITIALIZING)
        run_init(self.defaults_file, basedir)

        process = start_server_in_background(self.defaults_file, basedir)
        with self._lock:
            stopped = self.state is ServerState.STOPPED
            if not stopped:
                # the handle and STARTING are published together
                self.process = process
                self.state = ServerState.STARTING
        if stopped:
            kill_process(process)
            raise MysqlTestError(f"{self!r} was stopped while starting")
        logger.debug("port %s: %s", self.port, ServerState.STARTING.name)

        self._detector = ReadinessDetector(
            process.stderr,
            server_params.READY_MARKER,
            tee=sys.stderr if self.echo else None,
            name=f"mysqld-{self.port}",
        ).start()
        if server_params.WAIT_FOR_MARKER:
            self._detector.wait(server_params.READY_TIMEOUT)
        else:
            self._wait_for_connection(process, server_params.READY_TIMEOUT)

        self._advance(ServerState.READY)
        logger.info("mysqld ready on port %d (data dir %s)", self.port, self.data_dir)

    def _wait_for_connection(self, process, timeout=None):
        """Retry connecting until the server accepts, gives up, or exits.

        Used instead of the ready marker when the server's log wording is not
        known. A refused connection means "not listening yet"; anything else
        is fatal.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                connect(self.port).close()
                return
            except ConnectError as e:
                if not is_connection_refused(e.__cause__):
                    raise
            if process.poll() is not None:
                raise ReadinessError(
                    f"server exited with status {process.returncode} "
                    "before accepting connections",
                    self.output(),
                )
            if deadline is not None and time.monotonic() > deadline:
                raise ReadinessError(
                    f"server not accepting connections after {timeout}s",
                    self.output(),
                )
            time.sleep(server_params.RETRY_INTERVAL)

    def stop(self):
        """Kill the server and remove its data directory."""
        with self._lock:
            if self.state is ServerState.STOPPED:
                return
            self.state = ServerState.STOPPED
            process, self.process = self.process, None

        atexit.unregister(self.stop)
        _unregister(self)

        if process is not None:
            try:
                kill_process(process)
            except OSError as e:
                logger.debug("could not kill mysqld %d: %s", process.pid, e)
        if self._detector is not None:
            self._detector.join(timeout=server_params.KILL_TIMEOUT)
        if self.data_dir is not None:
            shutil.rmtree(self.data_dir, ignore_errors=True)
        if self.port is not None:
            release_port(self.port)
        logger.debug("port %s: STOPPED", self.port)

    def output(self):
        """Everything the server wrote to stderr so far."""
        if self._detector is None:
            return ""
        return self._detector.output()

    def dsn(self, suffix=""):
        """Connection string; the suffix is in the form "dbname?param=value"."""
        return dsn(self.port, suffix)

    def connect(self, suffix="", retry=None):
        """Open a pymysql connection. The suffix is in the form "dbname?param=value".

        Retries on refused connections by default only when startup did not
        wait for the ready marker.
        """
        if retry is None:
            retry = not server_params.WAIT_FOR_MARKER
        return connect(self.port, suffix, retry=retry)

    def create_database(self, name):
        create_database(self.port, name)


# Tracks live servers so the autouse fixture can stop whatever a test left
# running.
_mysql_servers = []
_mysql_servers_lock = threading.Lock()


def _register(server):
    with _mysql_servers_lock:
        _mysql_servers.append(server)


def _unregister(server):
    with _mysql_servers_lock:
        if server in _mysql_servers:
            _mysql_servers.remove(server)


def live_servers():
    with _mysql_servers_lock:
        return list(_mysql_servers)


def _report(fail, error):
    if fail is None:
        raise error
    fail(str(error))
    # fail() is expected to abort; make sure we never carry on regardless
    raise error


def new_started_server(fail=None, **kwargs):
    """Create and start a server.

    *fail* is a failure-reporting callable such as ``pytest.fail`` or
    ``TestCase.fail``; errors are handed to it instead of being raised.
    """
    server = MysqlServer(**kwargs)
    try:
        return server.start()
    except MysqlTestError as e:
        _report(fail, e)


def new_server_db(name, fail=None, **kwargs):
    """Create and start a server, create database *name* on it, and return
    both the server and a connection to that database."""
    server = new_started_server(fail, **kwargs)
    try:
        server.create_database(name)
        conn = server.connect(name)
    except MysqlTestError as e:
        server.stop()
        _report(fail, e)
    return server, conn
