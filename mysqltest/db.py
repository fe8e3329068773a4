"""Connection strings, connections and query helpers for test servers."""

import logging
import time
from urllib.parse import parse_qsl

import pymysql

from . import server_params
from .errors import ConnectError, QueryError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Connection strings
# ---------------------------------------------------------------------------

def dsn(port, suffix="", user=None, host=None):
    """Connection string for the server on *port*.

    The suffix is in the form "dbname?param=value".
    """
    user = user or server_params.MYSQL_USER
    host = host or server_params.MYSQL_HOST
    return f"{user}@tcp({host}:{port})/{suffix}"


def _convert_param(value):
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(value)
    except ValueError:
        return value


def parse_suffix(suffix):
    """Split "dbname?param=value&..." into a database name and driver kwargs."""
    dbname, _, query = (suffix or "").partition("?")
    params = {
        key: _convert_param(value)
        for key, value in parse_qsl(query, keep_blank_values=True)
    }
    return dbname, params


def connect_kwargs(port, suffix=""):
    dbname, params = parse_suffix(suffix)
    kwargs = {
        "host": server_params.MYSQL_HOST,
        "port": port,
        "user": server_params.MYSQL_USER,
    }
    if dbname:
        kwargs["database"] = dbname
    kwargs.update(params)
    return kwargs


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------

def is_connection_refused(error):
    original = getattr(error, "original_exception", None)
    if isinstance(original, ConnectionRefusedError):
        return True
    return "Connection refused" in str(error)


def connect(port, suffix="", retry=False):
    """Open a connection and make sure it answers a ping query.

    With *retry*, a refused connection means the server is not listening yet:
    sleep briefly and try again, for as long as it takes. Anything else
    raises ConnectError.
    """
    kwargs = connect_kwargs(port, suffix)
    attempts = 0
    while True:
        attempts += 1
        try:
            conn = pymysql.connect(**kwargs)
        except pymysql.err.OperationalError as e:
            if retry and is_connection_refused(e):
                time.sleep(server_params.RETRY_INTERVAL)
                continue
            raise ConnectError(f"could not connect to {dsn(port, suffix)}: {e}") from e
        except (pymysql.MySQLError, TypeError) as e:
            raise ConnectError(f"could not connect to {dsn(port, suffix)}: {e}") from e

        try:
            run_command(server_params.PING_QUERY, conn)
        except pymysql.MySQLError as e:
            conn.close()
            raise ConnectError(f"ping failed on {dsn(port, suffix)}: {e}") from e

        if attempts > 1:
            logger.debug("connected to port %d after %d attempts", port, attempts)
        return conn


def quote_identifier(name):
    return "`" + name.replace("`", "``") + "`"


def create_database(port, name):
    conn = connect(port)
    try:
        run_command(f"CREATE DATABASE {quote_identifier(name)}", conn)
    except pymysql.MySQLError as e:
        raise QueryError(f"could not create database {name!r}: {e}") from e
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def run_query(query, conn, args=None, raise_error=True):
    cur = conn.cursor()
    try:
        cur.execute(query, args)
        return cur.fetchall()
    except pymysql.MySQLError as error:
        if raise_error:
            raise
        print(error)
        return error
    finally:
        cur.close()


def run_command(query, conn, args=None, raise_error=True):
    cur = conn.cursor()
    try:
        cur.execute(query, args)
    except pymysql.MySQLError as error:
        if raise_error:
            raise
        print(error)
        return error
    finally:
        cur.close()
