"""
This module implements the certificate bundle fetcher. The bundle is a ZIP
archive of DoD certificates downloaded from a fixed endpoint and unpacked to a
scratch directory. Stale scratch state is always wiped before fetching, so the
fetch is idempotent.
"""


from CACSetup import logger
from CACSetup.exceptions import CACSetupBundleError, CACSetupCommandFailed
from CACSetup.models.plan import CertificateBundle, ProvisioningPlan


class BundleFetcher:
    """
    Downloads and unpacks the certificate bundle.
    """

    def __init__(self, conf: dict, executor):
        self.conf = conf
        self._executor = executor

    def bundle(self) -> CertificateBundle:
        """
        Returns an empty bundle bound to the configured locations.
        """
        return CertificateBundle(self.conf["bundle_url"],
                                 self.conf["archive"],
                                 self.conf["scratch_dir"],
                                 trusted_root_names=self.conf["trusted_roots"])

    def fetch(self, plan: ProvisioningPlan) -> CertificateBundle:
        """
        Downloads the archive, unpacks it and collects the certificate files.
        The bundle is stored on the plan.

        :raises CACSetupBundleError: If the download or the unpacking fails,
                                     or no certificate is found.
        """
        bundle = self.bundle()
        logger.info("Cleaning temporary certificate directory...")
        bundle.cleanup()
        bundle.archive.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Downloading DoD certificates...")
        try:
            self._executor.run(["wget", "-q", "-O", str(bundle.archive),
                                bundle.source_url])
        except CACSetupCommandFailed as e:
            raise CACSetupBundleError(f"Failed to download "
                                      f"{bundle.source_url}. {e}")
        try:
            self._executor.run(["unzip", "-q", "-o", str(bundle.archive),
                                "-d", str(bundle.scratch_dir)])
        except CACSetupCommandFailed as e:
            raise CACSetupBundleError(f"Failed to unzip {bundle.archive}. "
                                      f"{e}")

        files = [p for p in bundle.scratch_dir.glob(self.conf["cert_glob"])
                 if p.is_file()]
        if not files:
            raise CACSetupBundleError(f"No {self.conf['cert_glob']} files "
                                      f"found in {bundle.scratch_dir}")
        bundle.local_files = sorted(files)
        plan.bundle = bundle
        logger.info(f"{len(bundle)} certificates fetched")
        return bundle
