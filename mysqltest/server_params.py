"""Settings shared by the helpers.

Everything here is read at call time, so the pytest options (and tests) can
reassign these attributes before servers are started.
"""

import os
import shlex
import tempfile


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() not in ("0", "false", "no", "off", "")


def _env_float(name):
    value = os.getenv(name)
    if not value:
        return None
    return float(value)


MYSQLD = os.getenv("MYSQLD", "mysqld")
MYSQL_INSTALL_DB = os.getenv("MYSQL_INSTALL_DB", "mysql_install_db")

# extra command-line arguments, e.g. MariaDB's
# "--auth-root-authentication-method=normal" for a password-less root over TCP
INIT_EXTRA_ARGS = shlex.split(os.getenv("MYSQLTEST_INIT_ARGS", ""))
SERVER_EXTRA_ARGS = shlex.split(os.getenv("MYSQLTEST_SERVER_ARGS", ""))

MYSQL_HOST = os.getenv("MYSQLTEST_HOST", "127.0.0.1")
MYSQL_USER = os.getenv("MYSQLTEST_USER", "root")

# mysqld logs "... mysqld: ready for connections." once it accepts clients
READY_MARKER = os.getenv("MYSQLTEST_READY_MARKER", "ready for connections").encode()

# Off: start() does not wait for READY_MARKER but retries connecting until the
# server accepts, for servers whose log wording is not known.
WAIT_FOR_MARKER = _env_flag("MYSQLTEST_WAIT_FOR_MARKER", True)

USE_BASEDIR = _env_flag("MYSQLTEST_USE_BASEDIR", True)
BASEDIR = os.getenv("MYSQLTEST_BASEDIR")

ECHO_SERVER_OUTPUT = _env_flag("MYSQLTEST_ECHO", True)

# None waits for the ready marker without bound
READY_TIMEOUT = _env_float("MYSQLTEST_READY_TIMEOUT")

TMP_DIR = os.getenv("MYSQLTEST_TMPDIR", tempfile.gettempdir())
DATA_DIR_PREFIX = "mysql-DataDir-"
CONFIG_FILE_NAME = "my.cnf"
SOCKET_FILE_NAME = "socket"

RETRY_INTERVAL = 0.002
KILL_TIMEOUT = 10

# The leading comment keeps the query recognizable in the general log.
PING_QUERY = "/* ping */ SELECT 1"
