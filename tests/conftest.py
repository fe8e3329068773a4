import os
import shutil
import stat
import sys

import pytest

from mysqltest import basedir, server_params
from mysqltest.pytest_config import *


FAKE_BASEDIR = "/opt/fake-mysql"

FAKE_MYSQLD = """#!{python}
import os
import sys
import time

mode = {mode!r}
delay = {delay!r}
basedir = {basedir!r}

args = sys.argv[1:]
if "--help" in args:
    print("Usage: mysqld [OPTIONS]")
    if basedir:
        print("basedir                                  " + basedir)
    print("port                                     3306")
    sys.exit(0)

settings = {{}}
with open(args[0].split("=", 1)[1]) as f:
    for line in f:
        if "=" in line:
            key, value = line.split("=", 1)
            settings[key.strip()] = value.strip()

datadir = settings["datadir"]
if not os.path.exists(os.path.join(datadir, "initialized")):
    sys.stderr.write("[ERROR] data directory was not initialized\\n")
    sys.exit(1)
with open(os.path.join(datadir, "mysqld.args"), "w") as f:
    f.write("\\n".join(args))
with open(os.path.join(datadir, "mysqld.pid"), "w") as f:
    f.write(str(os.getpid()))

sys.stderr.write("[Note] InnoDB: starting\\n")
sys.stderr.flush()
if mode == "crash":
    sys.stderr.write("[ERROR] Aborting\\n")
    sys.exit(1)
time.sleep(delay)
if mode == "listen":
    # accepts connections but never logs the ready marker
    import socket
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    listener.bind(("127.0.0.1", int(settings["port"])))
    listener.listen(16)
    while True:
        conn, _ = listener.accept()
        conn.close()
if mode == "ready":
    sys.stderr.write(
        "[Note] mysqld: ready for connections.\\n"
        "Version: 'fake'  socket: '%s'  port: %s\\n" % (settings["socket"], settings["port"])
    )
    sys.stderr.flush()
while True:
    time.sleep(1)
"""

FAKE_INSTALL_DB = """#!{python}
import os
import sys

args = sys.argv[1:]
print("Installing MySQL system tables...")
sys.stdout.flush()
if {fail!r}:
    sys.stderr.write("ERROR: could not create system tables\\n")
    sys.exit(3)

settings = {{}}
with open(args[0].split("=", 1)[1]) as f:
    for line in f:
        if "=" in line:
            key, value = line.split("=", 1)
            settings[key.strip()] = value.strip()

datadir = settings["datadir"]
open(os.path.join(datadir, "initialized"), "w").close()
with open(os.path.join(datadir, "init.args"), "w") as f:
    f.write("\\n".join(args))
"""


def write_executable(path, text):
    path.write_text(text)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def data_root(tmp_path, monkeypatch):
    root = tmp_path / "data"
    root.mkdir()
    monkeypatch.setattr(server_params, "TMP_DIR", str(root))
    return root


@pytest.fixture
def fake_mysql(tmp_path, monkeypatch, data_root):
    """Point server_params at stand-in init and server programs.

    Returns a function that (re)writes the stand-ins with the requested
    behaviour: mode is "ready", "crash" (exits before ready), "silent"
    (runs but never reports ready) or "listen" (accepts TCP connections on
    its port without ever reporting ready).
    """
    bindir = tmp_path / "bin"
    bindir.mkdir()

    def make(mode="ready", init_fails=False, fake_basedir=FAKE_BASEDIR, delay=0.0):
        mysqld = write_executable(
            bindir / "mysqld",
            FAKE_MYSQLD.format(
                python=sys.executable, mode=mode, delay=delay, basedir=fake_basedir
            ),
        )
        install_db = write_executable(
            bindir / "mysql_install_db",
            FAKE_INSTALL_DB.format(python=sys.executable, fail=init_fails),
        )
        monkeypatch.setattr(server_params, "MYSQLD", mysqld)
        monkeypatch.setattr(server_params, "MYSQL_INSTALL_DB", install_db)
        return bindir

    monkeypatch.setattr(basedir, "_basedir_cache", basedir.BaseDirCache())
    monkeypatch.setattr(server_params, "BASEDIR", None)
    monkeypatch.setattr(server_params, "USE_BASEDIR", True)
    monkeypatch.setattr(server_params, "READY_TIMEOUT", 30)
    monkeypatch.setattr(server_params, "WAIT_FOR_MARKER", True)
    monkeypatch.setattr(server_params, "INIT_EXTRA_ARGS", [])
    monkeypatch.setattr(server_params, "SERVER_EXTRA_ARGS", [])
    make()
    return make


def pid_alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


real_mysql_available = (
    shutil.which(server_params.MYSQLD) is not None
    and shutil.which(server_params.MYSQL_INSTALL_DB) is not None
)

requires_mysql = pytest.mark.skipif(
    not real_mysql_available, reason="mysqld and mysql_install_db are not installed"
)
