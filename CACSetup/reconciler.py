"""
This module implements the package reconciler. It makes sure that the smart
card daemon, the certificate tools, the archive tools and the PKCS#11
middleware are installed through the host package manager and that the
socket-activated smart card daemon is enabled and running.

Every failure here is fatal: no later stage can succeed without these
packages. Re-running is safe because package managers are idempotent.
"""


from CACSetup import logger
from CACSetup.exceptions import CACSetupCommandFailed, CACSetupPackageError
from CACSetup.models.package_manager import PackageManagerAdapter


class PackageReconciler:
    """
    Brings installed packages and the smart card daemon to the desired state.
    """

    def __init__(self, adapter: PackageManagerAdapter, executor,
                 service: str = "pcscd.socket"):
        self.adapter = adapter
        self.service = service
        self._executor = executor

    def reconcile(self):
        """
        Synchronizes the package index, installs missing packages and starts
        the smart card daemon.

        :raises CACSetupPackageError: If any of the steps fails.
        """
        logger.info("Installing packages...")
        try:
            self.adapter.sync()
        except CACSetupCommandFailed as e:
            raise CACSetupPackageError(f"Package index sync failed. {e}")

        missing = self.adapter.missing(self.adapter.packages)
        if missing:
            try:
                self.adapter.install(missing)
            except CACSetupCommandFailed as e:
                raise CACSetupPackageError(f"Package installation failed. "
                                           f"{e}")
        else:
            logger.info("All required packages are present")

        self.start_service()

    def install_provider(self):
        """
        Installs the packages that provide the PKCS#11 library.

        :raises CACSetupPackageError: If the installation fails.
        """
        try:
            self.adapter.install(self.adapter.provider_packages)
        except CACSetupCommandFailed as e:
            raise CACSetupPackageError(f"Failed to install PKCS#11 "
                                       f"middleware. {e}")

    def start_service(self):
        logger.info(f"Starting {self.service}...")
        for action in ("enable", "start"):
            try:
                self._executor.run(["systemctl", action, self.service])
            except CACSetupCommandFailed as e:
                raise CACSetupPackageError(f"Failed to {action} "
                                           f"{self.service}. {e}")
        logger.debug(f"{self.service} is enabled and started")
