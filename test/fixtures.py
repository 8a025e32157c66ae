import os
import pwd
import pytest
import subprocess
from pathlib import Path

from CACSetup import schema_conf, logger, TRUSTED_ROOTS
from CACSetup.exceptions import CACSetupCommandFailed
from CACSetup.models.package_manager import Apt
from CACSetup.models.plan import (ProvisioningPlan, ProviderLibrary,
                                  CertificateBundle)

DIR_PATH = os.path.dirname(os.path.abspath(__file__))
FILES_DIR = os.path.join(DIR_PATH, "files")

INTERNAL_MODULE = (
    "library=\n"
    "name=NSS Internal PKCS #11 Module\n"
    "parameters=configdir='{dbdir}' certPrefix='' keyPrefix='' "
    "secmod='secmod.db' flags= updatedir='' updateCertPrefix='' "
    "updateKeyPrefix='' updateid='' updateTokenDescription=''\n"
    "NSS=Flags=internal,critical trustOrder=75 cipherOrder=100 "
    "slotParams=(1={{slotFlags=[RSA,RANDOM,SHA1,SHA256,SHA512] askpw=any "
    "timeout=30}})\n"
    "\n")

CERTUTIL_HEADER = (
    "\n"
    "Certificate Nickname                                         "
    "Trust Attributes\n"
    "                                                             "
    "SSL,S/MIME,JAR/XPI\n"
    "\n")


def bundle_names(others: int = 4) -> list:
    """Names of a bundle with all DoD roots and ``others`` intermediate CAs"""
    return list(TRUSTED_ROOTS) + [f"DOD_EMAIL_CA-{i}.cer"
                                  for i in range(others)]


class FakeExecutor:
    """
    Stand-in for ``CACSetup.executor.CommandExecutor``. Every invocation is
    recorded in ``calls``. The NSS tools, the package managers, ``wget`` and
    ``unzip`` are emulated well enough for the components to see the same
    files and outputs as on a real host.
    """

    def __init__(self):
        self.calls = []
        # substring of the command line -> return code
        self.failures = {}
        self.installed = set()
        self.install_hooks = []
        self.bundle = bundle_names()
        self.create_db = True
        # dbdir -> {nickname: trust}
        self.dbs = {}

    def fail(self, pattern: str, code: int = 1):
        self.failures[pattern] = code

    def called(self, *prefix) -> list:
        return [c for c in self.calls if tuple(c[:len(prefix)]) == prefix]

    def run(self, cmd, check=True, return_code=None, input=None):
        if return_code is None:
            return_code = [0]
        cmd = [str(i) for i in cmd]
        self.calls.append(cmd)
        line = " ".join(cmd)
        rc, stdout = 0, ""
        for pattern, code in self.failures.items():
            if pattern in line:
                rc = code
                break
        else:
            handler = getattr(self, f"_{cmd[0].replace('-', '_')}", None)
            if handler is not None:
                rc, stdout = handler(cmd)
        out = subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr="")
        if check and rc not in return_code:
            raise CACSetupCommandFailed(line, rc)
        return out

    @staticmethod
    def _opt(cmd, name):
        return cmd[cmd.index(name) + 1]

    def _certutil(self, cmd):
        dbdir = self._opt(cmd, "-d")
        path = Path(dbdir.split(":", 1)[1])
        if "-N" in cmd:
            self.dbs[dbdir] = {}
            if self.create_db:
                for name in ("cert9.db", "key4.db"):
                    path.joinpath(name).write_text("")
                path.joinpath("pkcs11.txt").write_text(
                    INTERNAL_MODULE.format(dbdir=dbdir))
            return 0, ""
        certs = self.dbs.setdefault(dbdir, {})
        if "-A" in cmd:
            certs[self._opt(cmd, "-n")] = self._opt(cmd, "-t")
            return 0, ""
        if "-M" in cmd:
            nickname = self._opt(cmd, "-n")
            if nickname not in certs:
                return 255, ""
            certs[nickname] = self._opt(cmd, "-t")
            return 0, ""
        if "-L" in cmd:
            return 0, CERTUTIL_HEADER + "".join(
                f"{name:<60} {trust}\n" for name, trust in certs.items())
        return 1, ""

    def _modutil(self, cmd):
        path = Path(self._opt(cmd, "-dbdir").split(":", 1)[1])
        txt = path.joinpath("pkcs11.txt")
        if "-add" in cmd:
            with txt.open("a") as f:
                f.write(f"library={self._opt(cmd, '-libfile')}\n"
                        f"name={self._opt(cmd, '-add')}\n\n")
            return 0, ""
        if "-list" in cmd:
            return 0, txt.read_text() if txt.exists() else ""
        return 1, ""

    def _wget(self, cmd):
        Path(self._opt(cmd, "-O")).write_bytes(b"PK\x03\x04")
        return 0, ""

    def _unzip(self, cmd):
        scratch = Path(self._opt(cmd, "-d"))
        scratch.mkdir(parents=True, exist_ok=True)
        for name in self.bundle:
            scratch.joinpath(name).write_text(
                "-----BEGIN CERTIFICATE-----\n")
        return 0, ""

    def _query(self, cmd):
        return (0 if cmd[-1] in self.installed else 1), ""

    _dpkg = _query
    _rpm = _query

    def _install(self, packages):
        self.installed.update(packages)
        for hook in self.install_hooks:
            hook(packages)
        return 0, ""

    def _apt_get(self, cmd):
        if cmd[1] == "install":
            return self._install(cmd[3:])
        return 0, ""

    def _dnf(self, cmd):
        if cmd[1] == "install":
            return self._install(cmd[3:])
        return 0, ""

    def _pacman(self, cmd):
        if cmd[1] == "-Q":
            return self._query(cmd)
        if cmd[1] == "-S":
            return self._install(cmd[4:])
        return 0, ""


@pytest.fixture(autouse=True)
def reset_log_level():
    yield
    logger.setLevel("NOTSET")


@pytest.fixture()
def executor():
    return FakeExecutor()


@pytest.fixture()
def home(tmp_path):
    path = tmp_path.joinpath("home", "user")
    path.mkdir(parents=True)
    return path


@pytest.fixture()
def firefox_profile(home):
    path = home.joinpath(".mozilla", "firefox", "abcd1234.default-release")
    path.mkdir(parents=True)
    return path


@pytest.fixture()
def library(tmp_path):
    path = tmp_path.joinpath("usr", "lib", "x86_64-linux-gnu",
                             "opensc-pkcs11.so")
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\x7fELF")
    return path


@pytest.fixture()
def conf_params(tmp_path):
    return {"scratch_dir": str(tmp_path.joinpath("AllCerts")),
            "archive": str(tmp_path.joinpath("AllCerts.zip")),
            "log_dir": str(tmp_path.joinpath("log")),
            "library_search_dirs": [str(tmp_path.joinpath("usr", "lib*"))],
            "package_manager": "apt"}


@pytest.fixture()
def conf(conf_params):
    return schema_conf.validate(dict(conf_params))


@pytest.fixture()
def user(home):
    entry = pwd.getpwuid(os.getuid())
    return entry.pw_name, entry.pw_uid, entry.pw_gid, home


@pytest.fixture()
def plan(user, tmp_path):
    name, uid, gid, home = user
    return ProvisioningPlan(user=name, uid=uid, gid=gid, home=home,
                            log_path=tmp_path.joinpath("cac_setup_0.log"))


@pytest.fixture()
def bundle(conf):
    """Unpacked bundle with the DoD roots and four intermediate CAs"""
    scratch = conf["scratch_dir"]
    scratch.mkdir(parents=True)
    files = []
    for name in bundle_names():
        f = scratch.joinpath(name)
        f.write_text("-----BEGIN CERTIFICATE-----\n")
        files.append(f)
    return CertificateBundle(conf["bundle_url"], conf["archive"], scratch,
                             files, conf["trusted_roots"])


@pytest.fixture()
def ready_plan(plan, library, bundle):
    """Plan with the provider resolved and the bundle fetched"""
    plan.provider = ProviderLibrary(library)
    plan.bundle = bundle
    return plan


@pytest.fixture()
def apt(executor):
    return Apt(executor)


@pytest.fixture()
def root(monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 0)


@pytest.fixture()
def invoking_user(monkeypatch, user):
    monkeypatch.setattr("CACSetup.controller.resolve_user",
                        lambda environ=None: user)
    return user
