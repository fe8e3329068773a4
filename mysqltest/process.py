"""Running mysql_install_db and mysqld."""

import logging
import subprocess

from . import server_params
from .errors import InitializationError, StartError

logger = logging.getLogger(__name__)


def build_command(binary, defaults_file, basedir=None, extra_args=()):
    # --defaults-file has to come first or mysqld ignores it
    command = [binary, f"--defaults-file={defaults_file}"]
    if basedir:
        command += ["--basedir", basedir]
    command += list(extra_args)
    return command


def run_init(defaults_file, basedir=None):
    """Run the init program to completion.

    Raises InitializationError, carrying everything the program printed,
    if it cannot be spawned or exits non-zero.
    """
    command = build_command(
        server_params.MYSQL_INSTALL_DB,
        defaults_file,
        basedir,
        server_params.INIT_EXTRA_ARGS,
    )
    logger.debug("running %s", command)
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
        )
    except OSError as e:
        raise InitializationError(f"could not run {command[0]}: {e}") from e

    output = result.stdout.decode(errors="replace")
    if result.returncode != 0:
        raise InitializationError(
            f"{command[0]} exited with status {result.returncode}",
            returncode=result.returncode,
            output=output,
        )
    return output


def start_server_in_background(defaults_file, basedir=None):
    """Spawn mysqld with its stderr piped back to us.

    The caller owns draining ``process.stderr``; see ReadinessDetector.
    """
    command = build_command(
        server_params.MYSQLD, defaults_file, basedir, server_params.SERVER_EXTRA_ARGS
    )
    logger.debug("starting %s", command)
    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=None,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise StartError(f"could not start {command[0]}: {e}") from e
    return process


def kill_process(proc, timeout=None):
    """Kill *proc* outright and reap it.

    Safe to call on processes that already exited.
    """
    if timeout is None:
        timeout = server_params.KILL_TIMEOUT
    if proc.poll() is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("process %d did not exit after SIGKILL", proc.pid)
