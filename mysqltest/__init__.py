"""Standalone mysqld instances suitable for use in tests.

Re-exports the public helpers so callers can ``from mysqltest import *``.
"""

from .errors import *
from .db import connect, create_database, dsn, parse_suffix, run_command, run_query
from .ports import PortAllocator, allocate_port, find_free_port, release_port
from .config import render_config, write_config
from .basedir import BaseDirCache, discover_basedir, get_basedir
from .process import kill_process, run_init, start_server_in_background
from .readiness import ReadinessDetector
from .server import (
    MysqlServer,
    ServerState,
    live_servers,
    new_server_db,
    new_started_server,
)
