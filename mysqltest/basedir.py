"""Discovery of the base directory mysqld was configured with.

Some versions of mysql_install_db cannot find their support files unless they
are told the installation root, so it is looked up once by asking mysqld to
describe itself and reused for every instance.
"""

import logging
import re
import subprocess
import threading

from . import server_params
from .errors import EnvironmentSetupError

logger = logging.getLogger(__name__)

BASEDIR_PATTERN = re.compile(rb"^basedir\s+(\S.*?)\s*$", re.MULTILINE)


def discover_basedir(mysqld):
    """Run ``mysqld --verbose --help`` and return the basedir it reports."""
    try:
        result = subprocess.run(
            [mysqld, "--verbose", "--help"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except OSError as e:
        raise EnvironmentSetupError(f"could not run {mysqld}: {e}") from e

    match = BASEDIR_PATTERN.search(result.stdout)
    if match is None:
        raise EnvironmentSetupError(
            f"no basedir line in `{mysqld} --verbose --help` output"
        )
    return match.group(1).decode()


class BaseDirCache:
    """Looks up the base directory at most once, even with concurrent callers.

    A failed lookup is remembered too: a broken installation will not fix
    itself between tests.
    """

    def __init__(self, lookup=discover_basedir):
        self._lookup = lookup
        self._lock = threading.Lock()
        self._done = False
        self._value = None
        self._error = None

    def get(self, mysqld):
        with self._lock:
            if not self._done:
                try:
                    self._value = self._lookup(mysqld)
                    logger.info("using mysqld basedir %s", self._value)
                except EnvironmentSetupError as e:
                    self._error = e
                self._done = True

        if self._error is not None:
            raise self._error
        return self._value


_basedir_cache = BaseDirCache()


def get_basedir():
    """Return the basedir to pass to the init and server programs, or None."""
    if server_params.BASEDIR:
        return server_params.BASEDIR
    if not server_params.USE_BASEDIR:
        return None
    return _basedir_cache.get(server_params.MYSQLD)
