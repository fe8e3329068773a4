"""Pytest hooks, command-line options and fixtures for ephemeral servers.

Pull these into a conftest.py with ``from mysqltest.pytest_config import *``.
"""

import pytest

from . import server_params
from .server import live_servers, new_server_db, new_started_server

DEFAULT_DATABASE = "testdb"


def pytest_addoption(parser):
    if "__mysqltest_initialized" not in parser.extra_info:
        parser.addoption(
            "--mysqld",
            action="store",
            default=None,
            help="mysqld binary used for test servers.",
        )
        parser.addoption(
            "--mysql-install-db",
            action="store",
            default=None,
            help="mysql_install_db binary used to initialize test servers.",
        )
        parser.addoption(
            "--mysql-quiet",
            action="store_true",
            default=False,
            help="do not echo test server output.",
        )
        parser.extra_info["__mysqltest_initialized"] = True


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "mysql_database(name): database created for the mysql_db fixture",
    )


def pytest_sessionstart(session):
    """Apply command-line options to server_params before any server starts."""
    config = session.config
    mysqld = config.getoption("--mysqld", default=None)
    if mysqld is not None:
        server_params.MYSQLD = mysqld
    install_db = config.getoption("--mysql-install-db", default=None)
    if install_db is not None:
        server_params.MYSQL_INSTALL_DB = install_db
    if config.getoption("--mysql-quiet", default=False):
        server_params.ECHO_SERVER_OUTPUT = False


@pytest.fixture(autouse=True)
def cleanup_mysql_servers():
    """Stop every server a test started, even if it failed before its own
    cleanup code ran. Servers that were already live (e.g. from a wider
    scoped fixture) are left alone."""
    before = set(id(s) for s in live_servers())
    yield
    for server in live_servers():
        if id(server) not in before:
            server.stop()


@pytest.fixture
def mysql_server():
    server = new_started_server(fail=pytest.fail)
    yield server
    server.stop()


@pytest.fixture
def mysql_db(request):
    marker = request.node.get_closest_marker("mysql_database")
    name = marker.args[0] if marker is not None else DEFAULT_DATABASE

    server, conn = new_server_db(name, fail=pytest.fail)
    yield server, conn
    conn.close()
    server.stop()
