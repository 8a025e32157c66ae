"""
This module defines various enumeration classes used throughout the CACSetup
package. These enumerations provide a set of
named constants, enhancing code readability and reducing
the likelihood of errors by restricting values to a predefined set.
"""


from enum import Enum


class TargetKind(str, Enum):
    """
    Enumeration for the browser families whose NSS trust database can be
    configured. Each run has at most one target of every kind.
    """

    firefox = "firefox"  # NSS database inside a Firefox profile directory
    chrome = "chrome"  # shared NSS database used by Chrome/Chromium


class TargetStatus(str, Enum):
    """
    Enumeration for the lifecycle states of a provisioning target.
    """

    pending = "pending"  # discovered, not processed yet
    configured = "configured"  # all configuration steps succeeded
    failed = "failed"  # a gating configuration step failed
    skipped = "skipped"  # disabled during discovery


class TrustFlag(str, Enum):
    """
    Enumeration for the trust assigned to an imported certificate. The
    ``flags`` property translates the value to ``certutil -t`` syntax.
    """

    plain_ca = "plain_ca"  # valid CA, no explicit trust
    trusted_root = "trusted_root"  # trusted CA for SSL, email and code signing

    @property
    def flags(self) -> str:
        return {TrustFlag.plain_ca: "CT,,",
                TrustFlag.trusted_root: "CT,C,C"}[self]


class ImportPolicy(str, Enum):
    """
    Enumeration for the reaction on a failed certificate import.
    """

    abort = "abort"  # first failure fails the target
    best_effort = "best-effort"  # failures are collected and reported


class Registration(str, Enum):
    """
    Enumeration for the way the PKCS#11 module is registered in a database.
    Both produce an equivalent ``pkcs11.txt``.
    """

    modutil = "modutil"  # modutil -add ... -force
    file = "file"  # library= and name= lines written directly


class PackageManagerType(str, Enum):
    """
    Enumeration for the package managers that CACSetup can drive.
    """

    apt = "apt"  # Debian, Ubuntu, Pop!_OS
    pacman = "pacman"  # Arch Linux and derivatives
    dnf = "dnf"  # Fedora, RHEL, CentOS


class ReturnCode(Enum):
    """
    Enumeration for the exit codes of the ``cac-setup`` command.
    """

    SUCCESS = 0  # run completed, every enabled target configured
    FAILURE = 1  # fatal error or at least one target failed
