"""
This module defines the ``NSSDatabase`` class, the boundary between CACSetup
and the NSS command line tools. Every operation on a browser trust database
(initialization, module registration, certificate import, trust changes and
listing) goes through the injected command executor; ``TrustFlag`` values are
translated to ``certutil`` syntax here and nowhere else.
"""


import os
import re
from pathlib import Path
from typing import Union

from CACSetup import logger, NSS_FILES, NSS_CERT_DB
from CACSetup.enums import TrustFlag, Registration
from CACSetup.models.file import File, Pkcs11Txt

# "<nickname><spaces><SSL>,<S/MIME>,<JAR/XPI>" line of certutil -L output
_CERT_LINE = re.compile(
    r"^(?P<name>\S.*?)\s+(?P<trust>[A-Za-z]*,[A-Za-z]*,[A-Za-z]*)$")


class NSSDatabase:
    """
    Represents an NSS ``sql:`` database stored in a directory. The database is
    made of ``cert9.db``, ``key4.db`` and ``pkcs11.txt``.
    """
    path: Path = None

    def __init__(self, path: Union[str, Path], executor):
        """
        :param path: Directory of the database.
        :type path: pathlib.Path or str
        :param executor: Object with a ``run`` method compatible with
                         ``CACSetup.executor.CommandExecutor.run``.
        """
        self.path = Path(path)
        self._executor = executor

    @property
    def dbdir(self) -> str:
        return f"sql:{self.path}"

    @property
    def files(self):
        return [self.path.joinpath(f) for f in NSS_FILES]

    @property
    def pkcs11_txt(self) -> Pkcs11Txt:
        return Pkcs11Txt(self.path)

    def exists(self) -> bool:
        return self.path.joinpath(NSS_CERT_DB).exists()

    def reset(self) -> list:
        """
        Deletes the database files. Absent files are not an error.

        :return: Names of the files that were removed.
        :rtype: list
        """
        removed = [f.name for f in self.files if File(f).remove()]
        if removed:
            logger.debug(f"Stale database files removed from {self.path}: "
                         f"{', '.join(removed)}")
        return removed

    def init(self):
        """
        Creates a new database protected by an empty password.
        """
        self._executor.run(["certutil", "-d", self.dbdir, "-N",
                            "--empty-password"])
        logger.debug(f"NSS database initialized in {self.path}")

    def add_module(self, name: str, library: Union[str, Path],
                   registration: Registration = Registration.modutil):
        """
        Registers the PKCS#11 module ``library`` under ``name``. A previous
        registration with the same name is overwritten.

        :param registration: ``modutil`` runs ``modutil -add ... -force``;
                             ``file`` writes the stanza to ``pkcs11.txt``.
        :type registration: CACSetup.enums.Registration
        """
        if registration == Registration.file:
            self.pkcs11_txt.add_module(name, library)
        else:
            self._executor.run(["modutil", "-dbdir", self.dbdir, "-add", name,
                                "-libfile", str(library), "-force"])
        logger.debug(f"PKCS#11 module {name} registered in {self.path}")

    def list_modules(self) -> str:
        return self._executor.run(["modutil", "-dbdir", self.dbdir,
                                   "-list"]).stdout

    def import_cert(self, cert: Union[str, Path], nickname: str,
                    trust: TrustFlag = TrustFlag.plain_ca):
        self._executor.run(["certutil", "-d", self.dbdir, "-A", "-t",
                            trust.flags, "-n", nickname, "-i", str(cert)])

    def set_trust(self, nickname: str, trust: TrustFlag):
        self._executor.run(["certutil", "-d", self.dbdir, "-M", "-t",
                            trust.flags, "-n", nickname])

    def list_certs(self) -> dict:
        """
        Lists the certificates stored in the database.

        :return: Mapping of nickname to its trust attributes string, e.g.
                 ``{"DoDRoot3.cer": "CT,C,C"}``.
        :rtype: dict
        """
        out = self._executor.run(["certutil", "-d", self.dbdir, "-L"]).stdout
        certs = {}
        for line in out.splitlines():
            m = _CERT_LINE.match(line.strip())
            if m:
                certs[m.group("name")] = m.group("trust")
        return certs

    def fix_permissions(self, uid: int, gid: int, mode: int = 0o600):
        """
        Hands the database files over to the given user and restricts them to
        owner read/write. Missing files are ignored.
        """
        for f in self.files:
            if not f.exists():
                continue
            os.chown(f, uid, gid)
            os.chmod(f, mode)
        logger.debug(f"Database files in {self.path} owned by {uid}:{gid} "
                     f"with mode {oct(mode)}")
