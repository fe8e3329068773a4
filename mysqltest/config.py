"""Rendering of the my.cnf handed to both mysql_install_db and mysqld."""

import logging
import os
from string import Template

from . import server_params
from .errors import ConfigRenderError

logger = logging.getLogger(__name__)

# Tuned down so that many instances can run side by side cheaply.
CONFIG_TEMPLATE = Template(
    """
[mysqld]
datadir                         = $data_dir
innodb-buffer-pool-size         = 5M
innodb-log-file-size            = 1M
innodb-read-io-threads          = 2
key_buffer_size                 = 16K
max-binlog-size                 = 256K
max-delayed-threads             = 5
max_allowed_packet              = 256K
net_buffer_length               = 2K
port                            = $port
socket                          = $socket
sort_buffer_size                = 32K
sql_mode                        = ''
table_open_cache                = 2
thread_cache_size               = 2
thread_stack                    = 128K
"""
)


def _check_template(template):
    try:
        template.substitute(data_dir="/", port=0, socket="/socket")
    except (KeyError, ValueError) as e:
        raise ConfigRenderError(f"malformed config template: {e}") from e


# A broken template is a programming error, so refuse to import at all.
_check_template(CONFIG_TEMPLATE)


def config_path(data_dir):
    return os.path.join(data_dir, server_params.CONFIG_FILE_NAME)


def render_config(data_dir, port, socket, extra_settings=None):
    """Return the my.cnf text for one instance.

    *extra_settings* is an optional mapping of additional ``[mysqld]`` keys,
    appended after the fixed ones so they take precedence.
    """
    text = CONFIG_TEMPLATE.substitute(data_dir=data_dir, port=port, socket=socket)
    if extra_settings:
        width = 32
        for key, value in extra_settings.items():
            text += f"{key:<{width}}= {value}\n"
    return text


def write_config(data_dir, port, socket, extra_settings=None):
    """Write the config file into *data_dir* and return its path."""
    path = config_path(data_dir)
    try:
        with open(path, "w") as f:
            f.write(render_config(data_dir, port, socket, extra_settings))
    except OSError as e:
        raise ConfigRenderError(f"could not write {path}: {e}") from e

    logger.debug("wrote config %s", path)
    return path
