"""
This module implements the trust store configurator, which brings the NSS
database of one provisioning target to the desired state:

1. reset: stale database files are deleted
2. initialize: a new database with an empty password is created
3. register: the PKCS#11 provider is registered under the module name
4. import: every certificate of the bundle is imported as a plain CA
5. elevate: certificates of the root allow-list get full trust
6. permissions: database files are handed over to the invoking user
7. verify: the certificate database file must exist

Steps run in this order and each one is gated on the previous one. A failing
step moves only the current target to the failed state. Elevation is the
single step where partial completion is accepted: roots missing from the
bundle are reported as warnings.
"""


from CACSetup import logger, NSS_CERT_DB
from CACSetup.enums import TargetStatus, TrustFlag, ImportPolicy
from CACSetup.exceptions import CACSetupCommandFailed, CACSetupTargetFailed
from CACSetup.models.nssdb import NSSDatabase
from CACSetup.models.plan import ProvisioningPlan, ProvisioningTarget


class TrustStoreConfigurator:
    """
    Configures the NSS database of provisioning targets.
    """

    def __init__(self, conf: dict, executor):
        self.conf = conf
        self._executor = executor

    def configure(self, plan: ProvisioningPlan,
                  target: ProvisioningTarget) -> TargetStatus:
        """
        Runs all configuration steps for the target and records the outcome
        on it. Disabled targets are left untouched.

        :return: Final status of the target.
        :rtype: CACSetup.enums.TargetStatus
        """
        if not target.enabled:
            target.status = TargetStatus.skipped
            return target.status

        logger.info(f"Configuring NSS database for {target.path}...")
        db = NSSDatabase(target.path, self._executor)
        target.failed_imports = []
        try:
            self.reset(db)
            self.initialize(db)
            self.register(plan, db)
            self.import_certs(plan, target, db)
            self.elevate(plan, db)
            self.fix_permissions(plan, db)
            self.verify(db)
        except CACSetupTargetFailed as e:
            target.status = TargetStatus.failed
            target.error = str(e)
            logger.warning(f"{target.kind.value.capitalize()}: {e}")
            return target.status

        target.status = TargetStatus.configured
        target.error = None
        logger.info(f"NSS database for {target.path} is configured")
        return target.status

    @staticmethod
    def reset(db: NSSDatabase):
        try:
            db.reset()
        except OSError as e:
            raise CACSetupTargetFailed(f"Failed to remove stale database "
                                       f"files from {db.path}. {e}")

    @staticmethod
    def initialize(db: NSSDatabase):
        logger.info(f"Initializing NSS database for {db.path}...")
        try:
            db.path.mkdir(parents=True, exist_ok=True)
            db.init()
        except (CACSetupCommandFailed, OSError) as e:
            raise CACSetupTargetFailed(f"Failed to initialize NSS database "
                                       f"for {db.path}. {e}")

    def register(self, plan: ProvisioningPlan, db: NSSDatabase):
        name = self.conf["module_name"]
        logger.info(f"Adding PKCS#11 module for {db.path}...")
        try:
            db.add_module(name, plan.provider.path, plan.registration)
        except (CACSetupCommandFailed, OSError) as e:
            raise CACSetupTargetFailed(f"Failed to add PKCS#11 module {name} "
                                       f"for {db.path}. {e}")

    @staticmethod
    def import_certs(plan: ProvisioningPlan, target: ProvisioningTarget,
                     db: NSSDatabase):
        """
        Imports every certificate of the bundle under its file name with
        plain CA trust. With the abort policy the first failure fails the
        target; with the best-effort policy failures are collected in
        ``target.failed_imports``.
        """
        logger.info(f"Importing DoD certificates for {db.path}...")
        for cert in plan.bundle.local_files:
            try:
                db.import_cert(cert, cert.name, TrustFlag.plain_ca)
            except CACSetupCommandFailed as e:
                if plan.import_policy == ImportPolicy.abort:
                    raise CACSetupTargetFailed(
                        f"Failed to import certificate {cert.name} in "
                        f"{db.path}. {e}")
                logger.warning(f"Failed to import certificate {cert.name} "
                               f"in {db.path}")
                target.failed_imports.append(cert.name)
                continue
            logger.debug(f"Imported certificate: {cert.name} in {db.path}")
        if target.failed_imports:
            logger.warning(f"{len(target.failed_imports)} of "
                           f"{len(plan.bundle)} certificates were not "
                           f"imported in {db.path}")

    @staticmethod
    def elevate(plan: ProvisioningPlan, db: NSSDatabase):
        """
        Gives full trust to the allowed roots present in the database. A root
        missing from the database is reported once and skipped.
        """
        try:
            present = db.list_certs()
        except CACSetupCommandFailed as e:
            raise CACSetupTargetFailed(f"Failed to list certificates in "
                                       f"{db.path}. {e}")
        for name in plan.bundle.trusted_root_names:
            if name not in present:
                logger.warning(f"Certificate {name} not found in {db.path}")
                continue
            try:
                db.set_trust(name, plan.bundle.trust_for(name))
            except CACSetupCommandFailed as e:
                raise CACSetupTargetFailed(f"Failed to set trust for {name} "
                                           f"in {db.path}. {e}")
            logger.debug(f"Set trust for {name} in {db.path}")

    @staticmethod
    def fix_permissions(plan: ProvisioningPlan, db: NSSDatabase):
        logger.info(f"Setting permissions for {db.path}...")
        try:
            db.fix_permissions(plan.uid, plan.gid)
        except OSError as e:
            raise CACSetupTargetFailed(f"Failed to set permissions for "
                                       f"{db.path}. {e}")

    def verify(self, db: NSSDatabase):
        logger.info(f"Verifying NSS database setup for {db.path}...")
        if not db.exists():
            raise CACSetupTargetFailed(f"{db.path.joinpath(NSS_CERT_DB)} not "
                                       f"created.")
        name = self.conf["module_name"]
        try:
            module = db.pkcs11_txt.module(name)
        except OSError as e:
            raise CACSetupTargetFailed(f"Failed to read "
                                       f"{db.pkcs11_txt.path}. {e}")
        if module is None:
            logger.warning(f"PKCS#11 module {name} is not listed in "
                           f"{db.pkcs11_txt.path}")
        else:
            logger.debug(f"PKCS#11 module for {db.path}: {module}")
