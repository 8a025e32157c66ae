"""
This module implements target discovery: it resolves the unprivileged user
that invoked the run, locates the browser trust database directories of that
user and the PKCS#11 provider library of the smart card middleware.

A browser that can not be discovered does not abort the run by itself. The
operator is asked whether to continue without it (or the question is answered
in advance with ``assume_yes``); in non-interactive mode a missing browser is
fatal.
"""


import glob
import os
import pwd
from pathlib import Path
from typing import Callable

from CACSetup import logger
from CACSetup.enums import TargetKind
from CACSetup.exceptions import (CACSetupAborted, CACSetupException,
                                 CACSetupCommandFailed,
                                 CACSetupProviderNotFound)
from CACSetup.models.plan import (ProvisioningPlan, ProvisioningTarget,
                                  ProviderLibrary)


def resolve_user(environ: dict = None):
    """
    Resolves the user that invoked the run. ``SUDO_USER`` wins; without it
    the user of the current session is used. The home directory always comes
    from the password database entry of that user, so it is never the home of
    the elevated account.

    :param environ: Environment to read ``SUDO_USER`` from, ``os.environ`` by
                    default.
    :type environ: dict, optional
    :return: Tuple of username, uid, gid and home directory.
    :rtype: tuple
    :raises CACSetupException: If the user is unknown or has no home
                               directory.
    """
    environ = os.environ if environ is None else environ
    username = environ.get("SUDO_USER")
    try:
        entry = pwd.getpwnam(username) if username \
            else pwd.getpwuid(os.getuid())
    except KeyError:
        raise CACSetupException(f"User {username} is not present in the "
                                f"system")
    home = Path(entry.pw_dir)
    if not home.is_dir():
        raise CACSetupException(f"Home directory {home} of user "
                                f"{entry.pw_name} not found")
    logger.debug(f"Invoking user {entry.pw_name} ({entry.pw_uid}:"
                 f"{entry.pw_gid}), home {home}")
    return entry.pw_name, entry.pw_uid, entry.pw_gid, home


class TargetDiscovery:
    """
    Locates the provisioning targets and the provider library on the host.
    """

    def __init__(self, conf: dict, executor,
                 confirm: Callable[[str], bool] = None):
        """
        :param conf: Validated configuration (``CACSetup.schema_conf``).
        :type conf: dict
        :param executor: Command executor used for the slot probe.
        :param confirm: Callable asking the operator a yes/no question. Only
                        used in interactive mode without ``assume_yes``.
        :type confirm: callable, optional
        """
        self.conf = conf
        self._executor = executor
        self._confirm = confirm

    def find_firefox_profile(self, home: Path):
        """
        Searches the Firefox directory of the user for a profile directory
        matching the default profile pattern, no deeper than
        ``profile_search_depth`` levels. The first match in sorted order
        wins.

        :return: Path of the profile or ``None``.
        :rtype: pathlib.Path
        """
        root = Path(home, self.conf["firefox_root"])
        if not root.is_dir():
            logger.debug(f"Firefox directory {root} does not exist")
            return None
        pattern = self.conf["profile_pattern"]
        for depth in range(1, self.conf["profile_search_depth"] + 1):
            parts = ["*"] * (depth - 1) + [pattern]
            found = sorted(p for p in root.glob("/".join(parts))
                           if p.is_dir())
            if found:
                if len(found) > 1:
                    logger.debug(f"Several Firefox profiles found, using "
                                 f"{found[0]}")
                return found[0]
        return None

    def _disable(self, plan: ProvisioningPlan, target: ProvisioningTarget,
                 reason: str):
        logger.warning(reason)
        browser = target.kind.value.capitalize()
        question = f"Continue without {browser} support?"
        if not plan.interactive:
            raise CACSetupAborted(f"{reason} Non-interactive run can not "
                                  f"continue without {browser}.")
        if not plan.assume_yes:
            if self._confirm is None or not self._confirm(question):
                raise CACSetupAborted()
        target.skip(reason)
        logger.info(f"{browser} target is skipped")

    def discover_targets(self, plan: ProvisioningPlan, create: bool = True):
        """
        Creates the Firefox and Chrome targets on the plan. The Chrome NSS
        directory is created if absent and handed over to the invoking user.

        :param create: When ``False`` nothing is created on the file system;
                       a missing Chrome NSS directory is only reported.
        :type create: bool
        :raises CACSetupAborted: If a browser can not be discovered and the
                                 run may not continue without it.
        """
        profile = self.find_firefox_profile(plan.home)
        firefox = plan.add_target(ProvisioningTarget(TargetKind.firefox,
                                                     profile))
        if profile is None:
            self._disable(plan, firefox,
                          f"No Firefox profile found in "
                          f"{plan.home.joinpath(self.conf['firefox_root'])}. "
                          f"Create a profile with 'firefox "
                          f"--ProfileManager'.")
        else:
            logger.debug(f"Firefox profile: {profile}")

        chrome_dir = plan.home.joinpath(self.conf["chrome_nssdb"])
        chrome = plan.add_target(ProvisioningTarget(TargetKind.chrome,
                                                    chrome_dir))
        if not create:
            if not chrome_dir.is_dir():
                logger.info(f"Chrome NSS directory {chrome_dir} does not "
                            f"exist yet")
            return plan.targets
        try:
            self._make_user_dir(plan, chrome_dir)
            logger.debug(f"Chrome NSS directory: {chrome_dir}")
        except OSError as e:
            self._disable(plan, chrome,
                          f"Failed to create Chrome NSS directory "
                          f"{chrome_dir}: {e}.")
        return plan.targets

    @staticmethod
    def _make_user_dir(plan: ProvisioningPlan, path: Path):
        # directories created here belong to the user, not to root
        missing = []
        p = path
        while not p.exists() and p != plan.home:
            missing.append(p)
            p = p.parent
        path.mkdir(parents=True, exist_ok=True)
        for d in missing:
            os.chown(d, plan.uid, plan.gid)

    def find_provider(self):
        """
        Searches the library directories for the provider library.

        :return: Path of the first match in sorted order, or ``None``.
        :rtype: pathlib.Path
        """
        name = self.conf["library_name"]
        for pattern in self.conf["library_search_dirs"]:
            for directory in sorted(glob.glob(pattern)):
                directory = Path(directory)
                if not directory.is_dir():
                    continue
                candidate = directory.joinpath(name)
                if candidate.is_file():
                    return candidate
                found = sorted(p for p in directory.rglob(name)
                               if p.is_file())
                if found:
                    return found[0]
        return None

    def resolve_provider(self, plan: ProvisioningPlan,
                         reinstall: Callable[[], None] = None):
        """
        Resolves the provider library shared by all targets. When it is
        missing and ``reinstall`` is given, the middleware is installed once
        and the search is repeated.

        :raises CACSetupProviderNotFound: If the library can not be found.
        """
        path = self.find_provider()
        if path is None and reinstall is not None:
            logger.warning(f"PKCS#11 library {self.conf['library_name']} not "
                           f"found. Attempting to install...")
            reinstall()
            path = self.find_provider()
        if path is None:
            raise CACSetupProviderNotFound(
                f"PKCS#11 library {self.conf['library_name']} not found in "
                f"{', '.join(self.conf['library_search_dirs'])}")
        plan.provider = ProviderLibrary(path)
        logger.info(f"PKCS#11 library: {path}")
        return plan.provider

    def probe_provider(self, plan: ProvisioningPlan) -> bool:
        """
        Lists the slots of the provider library. A failed probe is not fatal:
        the library may be fine while no reader or card is present yet.
        """
        try:
            self._executor.run(["pkcs11-tool", "--module",
                                str(plan.provider.path), "--list-slots"])
        except CACSetupCommandFailed:
            logger.warning("PKCS#11 library detected but no slots "
                           "available. You may need to insert a CAC or "
                           "restart pcscd.")
            return False
        plan.provider.verified = True
        logger.debug("PKCS#11 slot probe succeeded")
        return True
