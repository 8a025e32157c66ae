"""
This module serves as the initialization point for the CACSetup package.

It sets up the package-wide logging configuration using ``coloredlogs``.
It defines global constants for the default locations used by a provisioning
run: the certificate bundle endpoint, the scratch directory where the bundle
is unpacked, the directory of the persisted run log, and the names of the
files that make up an NSS trust database.

Additionally, it establishes the validation schema for the optional JSON
configuration file using the ``schema`` library. Every key has a default so
that an empty (or missing) configuration describes a complete run.

The module also provides a generalized ``run`` function, acting as a wrapper
for ``subprocess.run``. ``CACSetup.executor.CommandExecutor`` builds on it to
persist the raw output of external tools in the run log.
"""


import coloredlogs
import logging
import subprocess
from pathlib import Path
from schema import Schema, Use, Or, And, Optional

from CACSetup.enums import ImportPolicy, Registration, PackageManagerType
from CACSetup.exceptions import CACSetupCommandFailed

fmt = ("%(asctime)s %(name)s:%(module)s.%(funcName)s.%(lineno)d "
       "[%(levelname)s] %(message)s")
date_fmt = "%H:%M:%S"
coloredlogs.install(level="DEBUG", fmt=fmt, datefmt=date_fmt,
                    field_styles={'levelname': {'bold': True, 'color': 'blue'},
                                  'asctime': {'color': 'green'}})
logger = logging.getLogger(__name__)

DIR_PATH = Path(__file__).parent

BUNDLE_URL = "https://militarycac.com/maccerts/AllCerts.zip"
SCRATCH_DIR = Path("/tmp/AllCerts")
BUNDLE_ARCHIVE = Path("/tmp/AllCerts.zip")
LOG_DIR = Path("/tmp")

# Files of an NSS sql: database
NSS_CERT_DB = "cert9.db"
NSS_KEY_DB = "key4.db"
NSS_PKCS11_TXT = "pkcs11.txt"
NSS_FILES = (NSS_CERT_DB, NSS_KEY_DB, NSS_PKCS11_TXT)

MODULE_NAME = "OpenSC-PKCS11"
LIBRARY_NAME = "opensc-pkcs11.so"
TRUSTED_ROOTS = ["DoDRoot3.cer", "DoDRoot4.cer", "DoDRoot5.cer",
                 "DoDRoot6.cer"]
PCSCD_SERVICE = "pcscd.socket"


# Specify validation schema for the configuration file. Missing keys are
# filled with defaults, so Schema.validate({}) is a complete configuration.
schema_conf = Schema({
    Optional("bundle_url", default=BUNDLE_URL): Use(str),
    Optional("scratch_dir", default=SCRATCH_DIR): Use(Path),
    Optional("archive", default=BUNDLE_ARCHIVE): Use(Path),
    Optional("cert_glob", default="*.cer"): Use(str),
    Optional("trusted_roots", default=TRUSTED_ROOTS): [Use(str)],
    Optional("module_name", default=MODULE_NAME): Use(str),
    Optional("library_name", default=LIBRARY_NAME): Use(str),
    Optional("library_search_dirs", default=["/usr/lib*"]): [Use(str)],
    Optional("firefox_root", default=".mozilla/firefox"): Use(str),
    Optional("profile_pattern", default="*.default*"): Use(str),
    Optional("profile_search_depth", default=2): And(
        Use(int), lambda d: d >= 1),
    Optional("chrome_nssdb", default=".pki/nssdb"): Use(str),
    Optional("service", default=PCSCD_SERVICE): Use(str),
    Optional("package_manager", default=None): Or(
        None, And(Use(str.lower), Use(PackageManagerType))),
    Optional("packages", default=None): Or(None, [Use(str)]),
    Optional("provider_packages", default=None): Or(None, [Use(str)]),
    Optional("interactive", default=True): bool,
    Optional("assume_yes", default=False): bool,
    Optional("import_policy", default=ImportPolicy.abort): And(
        Use(str.lower), Use(ImportPolicy)),
    Optional("registration", default=Registration.modutil): And(
        Use(str.lower), Use(Registration)),
    Optional("log_dir", default=LOG_DIR): Use(Path),
})


def run(cmd: list[str], stdout: int = subprocess.PIPE,
        stderr: int = subprocess.PIPE, check: bool = True, log: bool = True,
        return_code: list = None, **kwargs) -> subprocess.CompletedProcess:
    """
    Executes an external command as a subprocess, providing a controlled
    wrapper around ``subprocess.run``. This function
    standardizes command execution, capturing and optionally logging output,
    and performing error checking based on expected return codes.

    :param cmd: The command to be executed, provided as a list of strings
                (preferred) or a single space-separated string.
    :type cmd: list or str
    :param stdout: Redirects the standard output of the command.
                   Defaults to ``subprocess.PIPE`` to capture output.
    :type stdout: None or int or IO
    :param stderr: Redirects the standard error of the command.
                   Defaults to ``subprocess.PIPE`` to capture output.
    :type stderr: None or int or IO
    :param check: If ``True``, the function will raise a
                  ``CACSetupCommandFailed`` exception if the command's
                  return code is not in the ``return_code`` list. Defaults to
                  ``True``.
    :type check: bool
    :param log: If ``True``, the command's standard output and standard error
                are logged at DEBUG level. Defaults to ``True``.
    :type log: bool
    :param return_code: A list of acceptable return codes for the command.
                        Defaults to ``[0]``.
    :type return_code: list
    :param kwargs: Additional keyword arguments are passed directly to the
                   ``subprocess.run`` function.
    :raises CACSetupCommandFailed: If ``check`` is ``True`` and the
                                   command's return code is not among
                                   the expected ``return_code`` values.
    :return: An object representing the completed process, including stdout,
             stderr, and return code.
    :rtype: subprocess.CompletedProcess
    """
    if return_code is None:
        return_code = [0]
    if isinstance(cmd, str):
        cmd = cmd.split(" ")
    cmd = [str(i) for i in cmd]
    logger.debug(f"run: {' '.join(cmd)}")
    out = subprocess.run(cmd, stdout=stdout, stderr=stderr, encoding="utf-8",
                         **kwargs)
    if log:
        if out.stdout:
            logger.debug(out.stdout)
        if out.stderr:
            logger.debug(out.stderr)

    if check:
        if out.returncode not in return_code:
            logger.error(f"Unexpected return code {out.returncode}. "
                         f"Expected: {return_code}")
            raise CACSetupCommandFailed(" ".join(cmd), out.returncode)
    return out
