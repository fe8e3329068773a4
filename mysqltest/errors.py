"""Exceptions raised while provisioning and talking to test servers."""


class MysqlTestError(Exception):
    """Base class for every error raised by mysqltest."""


class EnvironmentSetupError(MysqlTestError):
    """The host cannot run test servers at all (missing binary, bad install)."""


class ProvisioningError(MysqlTestError):
    """A port, directory or config file for one instance could not be set up."""


class ConfigRenderError(ProvisioningError):
    pass


class InitializationError(MysqlTestError):
    """The init program failed; ``output`` holds its combined stdout/stderr."""

    def __init__(self, message, returncode=None, output=""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output

    def __str__(self):
        msg = super().__str__()
        if self.output:
            msg = f"{msg}\n{self.output}"
        return msg


class StartError(MysqlTestError):
    pass


class ReadinessError(MysqlTestError):
    """The server stopped producing output, or timed out, before it was ready."""

    def __init__(self, message, output=""):
        super().__init__(message)
        self.output = output


class ConnectError(MysqlTestError):
    pass


class QueryError(MysqlTestError):
    """A helper statement (e.g. CREATE DATABASE) was rejected by the server."""
