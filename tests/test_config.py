from string import Template

import pytest

from mysqltest import config
from mysqltest.config import config_path, render_config, write_config
from mysqltest.errors import ConfigRenderError, ProvisioningError


def test_render_substitutes_instance_values():
    text = render_config("/tmp/mysql-DataDir-abc", 40123, "/tmp/mysql-DataDir-abc/socket")
    lines = [line.split("=", 1) for line in text.splitlines() if "=" in line]
    settings = {key.strip(): value.strip() for key, value in lines}

    assert text.lstrip().startswith("[mysqld]")
    assert settings["datadir"] == "/tmp/mysql-DataDir-abc"
    assert settings["port"] == "40123"
    assert settings["socket"] == "/tmp/mysql-DataDir-abc/socket"


def test_render_keeps_resources_small():
    text = render_config("/d", 1, "/d/socket")
    assert "innodb-buffer-pool-size         = 5M" in text
    assert "innodb-log-file-size            = 1M" in text
    assert "max_allowed_packet              = 256K" in text


def test_render_appends_extra_settings():
    text = render_config("/d", 1, "/d/socket", {"character-set-server": "utf8mb4"})
    assert text.rstrip().splitlines()[-1].split("=") == [
        "character-set-server".ljust(32),
        " utf8mb4",
    ]


def test_write_config(tmp_path):
    path = write_config(str(tmp_path), 3307, str(tmp_path / "socket"))

    assert path == config_path(str(tmp_path))
    assert path.endswith("my.cnf")
    assert "port                            = 3307" in open(path).read()


def test_write_config_missing_directory(tmp_path):
    with pytest.raises(ConfigRenderError) as excinfo:
        write_config(str(tmp_path / "gone"), 3307, "/nowhere/socket")

    # config failures are provisioning failures for the instance
    assert isinstance(excinfo.value, ProvisioningError)


def test_malformed_template_is_rejected():
    with pytest.raises(ConfigRenderError):
        config._check_template(Template("datadir = $data_dir\nport = $prot\n"))
    with pytest.raises(ConfigRenderError):
        config._check_template(Template("datadir = $"))
