"""
This module provides the ``PackageManagerAdapter`` capability (index sync,
package query and package installation) and its implementations for the
distributions CACSetup supports. A single provisioning workflow is
parameterized by the adapter selected at startup by host detection, instead of
keeping one script per distribution.
"""


import distro
import shutil

from CACSetup import logger
from CACSetup.enums import PackageManagerType
from CACSetup.exceptions import CACSetupPackageError


class PackageManagerAdapter:
    """
    Interface for package managers. Subclasses define the commands and the
    default package lists of their distribution.
    """
    type: PackageManagerType = None
    # smart card daemon, CCID driver, certificate tools, archive tools and
    # PKCS#11 middleware
    packages: list = None
    # packages providing the PKCS#11 library
    provider_packages: list = None
    _sync_cmd: list = None
    _query_cmd: list = None
    _install_cmd: list = None

    def __init__(self, executor, packages: list = None,
                 provider_packages: list = None):
        self._executor = executor
        if packages is not None:
            self.packages = list(packages)
        if provider_packages is not None:
            self.provider_packages = list(provider_packages)

    def sync(self):
        """
        Synchronizes the package index.
        """
        self._executor.run(self._sync_cmd)
        logger.debug(f"Package index synchronized by {self.type.value}")

    def query(self, package: str) -> bool:
        """
        Checks whether the package is installed.
        """
        # Return code 1 means the package is not installed
        out = self._executor.run(self._query_cmd + [package],
                                 return_code=[0, 1])
        return out.returncode == 0

    def missing(self, packages: list) -> list:
        """
        Returns packages from the list that are not installed on the system.
        """
        missing = []
        for pkg in packages:
            if self.query(pkg):
                logger.debug(f"Package {pkg} is present")
            else:
                logger.info(f"Package {pkg} is not present in the system")
                missing.append(pkg)
        return missing

    def install(self, packages: list):
        """
        Installs the packages. Installing an already installed package is a
        no-op for every supported package manager.
        """
        if not packages:
            return
        self._executor.run(self._install_cmd + list(packages))
        logger.debug(f"Packages installed: {', '.join(packages)}")


class Apt(PackageManagerAdapter):
    type = PackageManagerType.apt
    packages = ["pcscd", "libnss3-tools", "unzip", "wget", "opensc",
                "opensc-pkcs11"]
    provider_packages = ["opensc", "opensc-pkcs11"]
    _sync_cmd = ["apt-get", "update"]
    _query_cmd = ["dpkg", "-s"]
    _install_cmd = ["apt-get", "install", "-y"]


class Pacman(PackageManagerAdapter):
    type = PackageManagerType.pacman
    packages = ["pcsclite", "ccid", "nss", "unzip", "wget", "opensc",
                "pcsc-tools"]
    provider_packages = ["opensc"]
    _sync_cmd = ["pacman", "-Sy"]
    _query_cmd = ["pacman", "-Q"]
    _install_cmd = ["pacman", "-S", "--needed", "--noconfirm"]


class Dnf(PackageManagerAdapter):
    type = PackageManagerType.dnf
    packages = ["pcsc-lite", "pcsc-lite-ccid", "nss-tools", "unzip", "wget",
                "opensc"]
    provider_packages = ["opensc"]
    _sync_cmd = ["dnf", "makecache"]
    _query_cmd = ["rpm", "-q"]
    _install_cmd = ["dnf", "install", "-y"]


ADAPTERS = {PackageManagerType.apt: Apt,
            PackageManagerType.pacman: Pacman,
            PackageManagerType.dnf: Dnf}

# distribution IDs as reported by distro.id() and distro.like()
_DISTRO_IDS = {
    PackageManagerType.apt: ("debian", "ubuntu", "pop", "linuxmint"),
    PackageManagerType.pacman: ("arch", "manjaro", "endeavouros"),
    PackageManagerType.dnf: ("fedora", "rhel", "centos"),
}

_BINARIES = {PackageManagerType.apt: "apt-get",
             PackageManagerType.pacman: "pacman",
             PackageManagerType.dnf: "dnf"}


def detect_package_manager() -> PackageManagerType:
    """
    Identifies the package manager of the host. The ``distro`` library
    provides the ID of the distribution and the IDs it is derived from; when
    none of them is known, the first package manager binary found in ``PATH``
    is used.

    :return: Type of the host package manager.
    :rtype: CACSetup.enums.PackageManagerType
    :raises CACSetupPackageError: If no supported package manager is found.
    """
    ids = [distro.id().lower()] + distro.like().lower().split()
    logger.debug(f"Distribution IDs: {', '.join(i for i in ids if i)}")
    for pm_type, known in _DISTRO_IDS.items():
        if any(i in known for i in ids):
            return pm_type

    for pm_type, binary in _BINARIES.items():
        if shutil.which(binary):
            logger.warning(f"Unknown distribution '{distro.id()}', using "
                           f"{binary} found in PATH")
            return pm_type

    raise CACSetupPackageError(
        f"No supported package manager found on '{distro.name()}'")


def get_adapter(executor, pm_type: PackageManagerType = None,
                packages: list = None, provider_packages: list = None):
    """
    Builds the adapter for ``pm_type``, detected from the host when ``None``.
    """
    if pm_type is None:
        pm_type = detect_package_manager()
    logger.info(f"Using package manager {pm_type.value}")
    return ADAPTERS[pm_type](executor, packages, provider_packages)
