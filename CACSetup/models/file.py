"""
This module contains classes that represent files of an NSS trust database.
It defines a generic ``File`` class for a database file that is read as lines,
written back and removed, and the ``Pkcs11Txt`` subclass that manages the
module registration file ``pkcs11.txt``, where every PKCS#11 module is
described by a stanza of ``key=value`` lines separated by an empty line.
"""


from pathlib import Path
from typing import Union

from CACSetup import logger


class File:
    """
    This class serves as an interface and base implementation for generic
    operations on database files.

    * save:   save the file
    * remove: remove the file

    .. note:: Content is loaded lazily as a list of lines on first access.
    """
    _conf_file = None
    _simple_content = None

    def __init__(self, filepath: Union[str, Path]):
        """
        :param filepath: The path to the file that this object will manage.
        :type filepath: Union[str, pathlib.Path]
        """

        self._conf_file = Path(filepath)
        self._simple_content = None

    @property
    def path(self):
        return self._conf_file

    def exists(self):
        return self._conf_file.exists()

    def remove(self):
        """
        Removes the file from the file system if it exists.

        :return: ``True`` if the file was removed.
        :rtype: bool
        """

        if self._conf_file.exists():
            self._conf_file.unlink()
            logger.debug(f"Removed file {self._conf_file}.")
            return True
        return False

    def _load(self):
        if self._simple_content is None:
            if self._conf_file.exists():
                with self._conf_file.open() as config:
                    self._simple_content = config.readlines()
            else:
                self._simple_content = []
        return self._simple_content

    def save(self):
        """
        Writes the current content to the file system.
        """

        with self._conf_file.open("w") as config:
            config.writelines(self._load())


class Pkcs11Txt(File):
    """
    The ``pkcs11.txt`` file of an NSS ``sql:`` database. Writing a stanza with
    ``library=`` and ``name=`` registers a PKCS#11 module exactly like
    ``modutil -add`` does.
    """

    def __init__(self, nssdb: Union[str, Path]):
        super().__init__(Path(nssdb, "pkcs11.txt"))

    def modules(self) -> list:
        """
        Parses the file into module stanzas.

        :return: List of dictionaries, one per module, in file order.
        :rtype: list
        """

        modules = []
        current = {}
        for line in self._load():
            line = line.strip()
            if not line:
                if current:
                    modules.append(current)
                    current = {}
                continue
            if line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            current[key.strip()] = value.strip()
        if current:
            modules.append(current)
        return modules

    def module(self, name: str):
        for m in self.modules():
            if m.get("name") == name:
                return m
        return None

    def add_module(self, name: str, library: Union[str, Path]):
        """
        Registers ``library`` under ``name``, replacing a stale stanza of the
        same name.
        """

        stanzas = [m for m in self.modules() if m.get("name") != name]
        stanzas.append({"library": str(library), "name": name})
        content = []
        for m in stanzas:
            content.extend(f"{k}={v}\n" for k, v in m.items())
            content.append("\n")
        self._simple_content = content
        self.save()
        logger.debug(f"Module {name} ({library}) written to {self.path}")
