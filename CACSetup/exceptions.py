"""
Exceptions that are used in the CACSetup package.
This module defines a hierarchy of custom exception classes raised by the
provisioning components. Every exception except ``CACSetupTargetFailed`` is
fatal for the whole run; ``CACSetupTargetFailed`` only moves a single target
to the failed state.
"""


class CACSetupException(Exception):
    """
    Base exception class for all custom exceptions within CACSetup.
    All other CACSetup-specific exceptions inherit from this class,
    allowing for a unified way to catch any error originating from the package.
    """
    def __init__(self, *args):
        super().__init__(*args)


class CACSetupCommandFailed(CACSetupException):
    """
    Exception raised when an external command returns an unexpected code.
    When the raw tool output was persisted, the path of the log file is part
    of the message so the operator can inspect it.
    """

    def __init__(self, cmd, code, log_file=None):
        self.cmd = cmd
        self.code = code
        self.log_file = log_file
        msg = f"Command '{cmd}' failed with return code '{code}'."
        if log_file is not None:
            msg += f" Check {log_file} for the tool output."
        super().__init__(msg)


class CACSetupNotRoot(CACSetupException):
    """
    Exception raised when the run is started without superuser privileges.
    """
    default = "Superuser privileges are required. Run with sudo."

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)


class CACSetupAborted(CACSetupException):
    """
    Exception raised when a browser target can not be discovered and the
    operator declined (or was not asked) to continue without it.
    """
    default = "Aborted by user"

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)


class CACSetupWrongConfig(CACSetupException):
    """
    Exception raised when the configuration file can not be loaded or does
    not pass the validation schema.
    """
    default = "Configuration file is not valid"

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)


class CACSetupPackageError(CACSetupException):
    """
    Exception raised when the package index sync, the package installation
    or the smart card daemon start fails.
    """
    default = "Package reconciliation failed"

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)


class CACSetupProviderNotFound(CACSetupException):
    """
    Exception raised when the PKCS#11 provider library can not be found,
    even after an installation attempt.
    """
    default = "PKCS#11 provider library not found"

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)


class CACSetupBundleError(CACSetupException):
    """
    Exception raised when the certificate bundle can not be downloaded,
    unpacked, or does not contain any certificate.
    """
    default = "Certificate bundle is not usable"

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)


class CACSetupTargetFailed(CACSetupException):
    """
    Exception raised by the trust store configurator when a gating step fails
    for one target. It never aborts the whole run.
    """
    default = "Target configuration failed"

    def __init__(self, msg=None):
        msg = self.default if msg is None else msg
        super().__init__(msg)
