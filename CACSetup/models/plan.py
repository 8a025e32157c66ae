"""
This module defines the data of a single provisioning run: the
``ProvisioningTarget`` objects (one per browser family), the shared
``ProviderLibrary``, the fetched ``CertificateBundle`` and the
``ProvisioningPlan`` value that is threaded through every component call.
"""


import shutil
from pathlib import Path, PosixPath

from CACSetup import logger
from CACSetup.enums import (TargetKind, TargetStatus, TrustFlag,
                            ImportPolicy, Registration)


class ProvisioningTarget:
    """
    One certificate store to configure. Targets are created during
    discovery, mutated by the configurator and consumed by the reporter.
    """
    kind: TargetKind = None
    path: Path = None
    enabled: bool = True
    status: TargetStatus = TargetStatus.pending
    error: str = None

    def __init__(self, kind: TargetKind, path: Path, enabled: bool = True):
        self.kind = kind
        self.path = Path(path) if path is not None else None
        self.enabled = enabled
        self.status = TargetStatus.pending if enabled \
            else TargetStatus.skipped
        self.error = None
        self.failed_imports = []

    def __repr__(self):
        return f"<ProvisioningTarget {self.kind.value} {self.path} " \
               f"{self.status.value}>"

    def skip(self, reason: str = None):
        """
        Disables the target. A skipped target is never touched by the
        configurator.
        """
        self.enabled = False
        self.status = TargetStatus.skipped
        self.error = reason

    def to_dict(self):
        """
        Converts the target into a dictionary suitable for JSON serialization.

        :return: A dictionary representation of the target.
        :rtype: dict
        """
        d = {k: str(v) if type(v) in (PosixPath, Path) else v
             for k, v in self.__dict__.items()}
        d["kind"] = self.kind.value
        d["status"] = self.status.value
        return d


class ProviderLibrary:
    """
    The PKCS#11 shared object of the smart card middleware. ``verified`` is
    set only after a successful slot listing.
    """
    path: Path = None
    verified: bool = False

    def __init__(self, path: Path, verified: bool = False):
        self.path = Path(path)
        self.verified = verified

    def __repr__(self):
        return f"<ProviderLibrary {self.path} verified={self.verified}>"


class CertificateBundle:
    """
    The fetched and unpacked trust material. Every certificate of the bundle
    is imported as a plain CA; names in ``trusted_root_names`` are elevated
    afterwards.
    """
    source_url: str = None
    archive: Path = None
    scratch_dir: Path = None

    def __init__(self, source_url: str, archive: Path, scratch_dir: Path,
                 local_files: list = None, trusted_root_names: list = None):
        self.source_url = source_url
        self.archive = Path(archive)
        self.scratch_dir = Path(scratch_dir)
        self.local_files = sorted(local_files or [])
        self.trusted_root_names = list(trusted_root_names or [])

    def __len__(self):
        return len(self.local_files)

    def trust_for(self, name: str) -> TrustFlag:
        """
        Returns the trust the certificate with the given nickname must end up
        with after configuration.
        """
        if name in self.trusted_root_names:
            return TrustFlag.trusted_root
        return TrustFlag.plain_ca

    def cleanup(self):
        """
        Removes the downloaded archive and the scratch directory. Missing
        files are not an error.
        """
        if self.scratch_dir.exists():
            shutil.rmtree(self.scratch_dir)
            logger.debug(f"Removed scratch directory {self.scratch_dir}")
        if self.archive.exists():
            self.archive.unlink()
            logger.debug(f"Removed archive {self.archive}")


class ProvisioningPlan:
    """
    Per-run state shared by all components. It replaces global enable flags:
    every component receives the plan explicitly and records its outcome on
    it.
    """
    user: str = None
    uid: int = None
    gid: int = None
    home: Path = None
    interactive: bool = True
    assume_yes: bool = False
    import_policy: ImportPolicy = ImportPolicy.abort
    registration: Registration = Registration.modutil
    provider: ProviderLibrary = None
    bundle: CertificateBundle = None
    log_path: Path = None

    def __init__(self, user: str = None, uid: int = None, gid: int = None,
                 home: Path = None, interactive: bool = True,
                 assume_yes: bool = False,
                 import_policy: ImportPolicy = ImportPolicy.abort,
                 registration: Registration = Registration.modutil,
                 log_path: Path = None):
        self.user = user
        self.uid = uid
        self.gid = gid
        self.home = Path(home) if home is not None else None
        self.interactive = interactive
        self.assume_yes = assume_yes
        self.import_policy = import_policy
        self.registration = registration
        self.log_path = log_path
        self.targets = []
        self.provider = None
        self.bundle = None

    def add_target(self, target: ProvisioningTarget):
        """
        Adds a target to the plan. Only one target per browser family and per
        path is accepted.

        :raises ValueError: If the kind or the path is already planned.
        """
        for t in self.targets:
            if t.kind == target.kind:
                raise ValueError(f"Target {target.kind.value} is already "
                                 f"planned")
            if target.path is not None and t.path == target.path:
                raise ValueError(f"Path {target.path} is already used by "
                                 f"target {t.kind.value}")
        self.targets.append(target)
        return target

    def target(self, kind: TargetKind):
        for t in self.targets:
            if t.kind == kind:
                return t
        return None

    def enabled_targets(self):
        return [t for t in self.targets if t.enabled]

    def failed(self):
        return [t for t in self.targets if t.status == TargetStatus.failed]
