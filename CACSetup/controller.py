"""
This module defines the ``Controller`` class, which serves as the central
orchestrator of a provisioning run.

It bridges the gap between the CLI and the components that do the work:
target discovery, package reconciliation, certificate bundle fetching, trust
store configuration and outcome reporting. The ``Controller`` loads and
validates the configuration, builds the ``ProvisioningPlan`` for the invoking
user and threads it through every component in a fixed order.
"""


import json
import os
from pathlib import Path
from schema import SchemaError
from typing import Callable, Union

from CACSetup import schema_conf, logger
from CACSetup.configurator import TrustStoreConfigurator
from CACSetup.discovery import TargetDiscovery, resolve_user
from CACSetup.enums import ReturnCode
from CACSetup.exceptions import (CACSetupException, CACSetupNotRoot,
                                 CACSetupWrongConfig, CACSetupCommandFailed)
from CACSetup.executor import CommandExecutor
from CACSetup.fetcher import BundleFetcher
from CACSetup.models.log import RunLog, default_log_path
from CACSetup.models.nssdb import NSSDatabase
from CACSetup.models.package_manager import get_adapter
from CACSetup.models.plan import ProvisioningPlan, ProviderLibrary
from CACSetup.reconciler import PackageReconciler
from CACSetup.reporter import OutcomeReporter


class Controller:
    """
    The ``Controller`` class orchestrates the provisioning workflow:
    Discovery, Reconciler, Fetcher, Configurator (once per target) and
    Reporter. Globally fatal conditions propagate as ``CACSetupException``
    subclasses; failures of a single target are recorded on the target.
    """
    lib_conf: dict = None
    _lib_conf_path: Path = None
    log_path: Path = None
    plan: ProvisioningPlan = None
    run_log: RunLog = None

    @property
    def conf_path(self):
        """
        Returns the absolute path to the configuration file loaded by the
        Controller, ``None`` when the defaults are used.

        :rtype: pathlib.Path
        """
        return self._lib_conf_path

    def __init__(self, config: Union[Path, str] = None, params: dict = None,
                 executor=None, adapter=None,
                 confirm: Callable[[str], bool] = None, environ: dict = None):
        """
        Initializes the Controller, parsing and validating the optional JSON
        configuration file.

        :param config: Path to the JSON configuration file. Without it the
                       defaults of ``CACSetup.schema_conf`` are used.
        :type config: pathlib.Path or str, optional
        :param params: Values overriding the configuration file, typically
                       originating from CLI options.
        :type params: dict, optional
        :param executor: Command executor; a ``CommandExecutor`` writing to
                         the run log is created when ``None``.
        :param adapter: Package manager adapter; selected by host detection
                        (or the ``package_manager`` key) when ``None``.
        :param confirm: Callable asking the operator a yes/no question.
        :type confirm: callable, optional
        :param environ: Environment used to resolve the invoking user.
        :type environ: dict, optional
        :raises CACSetupWrongConfig: If the configuration can not be loaded
                                     or validated.
        """
        tmp_conf = {}
        if config:
            self._lib_conf_path = config.absolute() \
                if isinstance(config, Path) else Path(config).absolute()
            try:
                with self._lib_conf_path.open("r") as f:
                    tmp_conf = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise CACSetupWrongConfig(
                    f"Can't load configuration {self._lib_conf_path}: {e}")
            if not isinstance(tmp_conf, dict):
                raise CACSetupWrongConfig("Data are not loaded correctly.")
        self.lib_conf = self._validate_configuration(tmp_conf, params)

        self.log_path = default_log_path(self.lib_conf["log_dir"])
        self.executor = executor if executor is not None \
            else CommandExecutor(self.log_path)
        self._adapter = adapter
        self._confirm = confirm
        self._environ = environ

    @staticmethod
    def _validate_configuration(conf: dict, params: dict = None) -> dict:
        """
        Validates the configuration against ``CACSetup.schema_conf``. Values
        in ``params`` that are not ``None`` override the file.

        :return: The validated configuration with defaults filled in.
        :rtype: dict
        :raises CACSetupWrongConfig: If the configuration does not conform to
                                     the schema.
        """
        conf = dict(conf)
        if params:
            conf.update({k: v for k, v in params.items() if v is not None})
        try:
            return schema_conf.validate(conf)
        except SchemaError as e:
            raise CACSetupWrongConfig(f"Configuration is not valid: {e}")

    @staticmethod
    def check_root():
        if os.geteuid() != 0:
            raise CACSetupNotRoot()

    def make_plan(self, interactive: bool = None) -> ProvisioningPlan:
        """
        Builds the plan of the run for the invoking user.
        """
        user, uid, gid, home = resolve_user(self._environ)
        return ProvisioningPlan(
            user=user, uid=uid, gid=gid, home=home,
            interactive=self.lib_conf["interactive"]
            if interactive is None else interactive,
            assume_yes=self.lib_conf["assume_yes"],
            import_policy=self.lib_conf["import_policy"],
            registration=self.lib_conf["registration"],
            log_path=self.log_path)

    @property
    def adapter(self):
        if self._adapter is None:
            self._adapter = get_adapter(
                self.executor, self.lib_conf["package_manager"],
                self.lib_conf["packages"], self.lib_conf["provider_packages"])
        return self._adapter

    def setup(self) -> ReturnCode:
        """
        Runs the whole provisioning workflow. The scratch directory is
        removed after the configurator stage whatever its outcome.

        :return: ``SUCCESS`` when every enabled target is configured,
                 ``FAILURE`` when at least one target failed.
        :rtype: CACSetup.enums.ReturnCode
        :raises CACSetupException: On a globally fatal condition.
        """
        with RunLog(self.log_path) as self.run_log:
            try:
                self.check_root()
                self.plan = self.make_plan()
                self._setup(self.plan)
            except CACSetupException as e:
                logger.error(f"{e} Debug log: {self.log_path}")
                raise
            OutcomeReporter(self.lib_conf["module_name"]).report(self.plan)

        if self.plan.failed():
            return ReturnCode.FAILURE
        return ReturnCode.SUCCESS

    def _setup(self, plan: ProvisioningPlan):
        discovery = TargetDiscovery(self.lib_conf, self.executor,
                                    self._confirm)
        reconciler = PackageReconciler(self.adapter, self.executor,
                                       self.lib_conf["service"])
        fetcher = BundleFetcher(self.lib_conf, self.executor)
        configurator = TrustStoreConfigurator(self.lib_conf, self.executor)

        logger.info("Setting up user directories...")
        discovery.discover_targets(plan)
        reconciler.reconcile()
        logger.info("Checking PKCS#11 library...")
        discovery.resolve_provider(plan,
                                   reinstall=reconciler.install_provider)
        discovery.probe_provider(plan)

        try:
            fetcher.fetch(plan)
            for target in plan.targets:
                configurator.configure(plan, target)
        finally:
            logger.info("Cleaning up...")
            fetcher.bundle().cleanup()

    def discover(self) -> ProvisioningPlan:
        """
        Discovers targets and the provider library without changing the
        system. Browsers that can not be found are reported as skipped.
        """
        plan = self.make_plan(interactive=True)
        plan.assume_yes = True
        discovery = TargetDiscovery(self.lib_conf, self.executor)
        discovery.discover_targets(plan, create=False)
        path = discovery.find_provider()
        if path is None:
            logger.warning(f"PKCS#11 library {self.lib_conf['library_name']} "
                           f"not found")
        else:
            plan.provider = ProviderLibrary(path)
            logger.info(f"PKCS#11 library: {path}")
        self.plan = plan
        return plan

    def diagnose(self) -> ProvisioningPlan:
        """
        Probes the provider library and lists the registered modules and the
        trust of the allowed roots for every target that has a database.
        """
        plan = self.discover()
        if plan.provider is not None:
            TargetDiscovery(self.lib_conf, self.executor) \
                .probe_provider(plan)
        roots = self.lib_conf["trusted_roots"]
        for target in plan.enabled_targets():
            db = NSSDatabase(target.path, self.executor)
            if not db.exists():
                logger.warning(f"No NSS database in {target.path}")
                continue
            try:
                logger.info(f"Modules in {target.path}:\n"
                            f"{db.list_modules()}")
                certs = db.list_certs()
            except CACSetupCommandFailed as e:
                logger.warning(e)
                continue
            for name in roots:
                logger.info(f"{target.kind.value}: {name} "
                            f"{certs.get(name, 'not present')}")
        return plan

    def cleanup(self):
        """
        Removes the downloaded archive and the scratch directory.
        """
        BundleFetcher(self.lib_conf, self.executor).bundle().cleanup()
        logger.info("Scratch files removed")
