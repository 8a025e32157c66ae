"""
This module contains unit tests for package_manager.py
"""
import pytest

from CACSetup.enums import PackageManagerType
from CACSetup.exceptions import CACSetupPackageError
from CACSetup.models import package_manager
from CACSetup.models.package_manager import (Apt, Pacman, Dnf, get_adapter,
                                             detect_package_manager)


@pytest.fixture()
def host(monkeypatch):
    def set_host(distro_id, like="", binaries=()):
        monkeypatch.setattr(package_manager.distro, "id", lambda: distro_id)
        monkeypatch.setattr(package_manager.distro, "like", lambda: like)
        monkeypatch.setattr(package_manager.distro, "name",
                            lambda: distro_id.capitalize())
        monkeypatch.setattr(package_manager.shutil, "which",
                            lambda b: f"/usr/bin/{b}" if b in binaries
                            else None)
    return set_host


@pytest.mark.parametrize("distro_id,like,expected", [
    ("ubuntu", "debian", PackageManagerType.apt),
    ("pop", "ubuntu debian", PackageManagerType.apt),
    ("arch", "", PackageManagerType.pacman),
    ("endeavouros", "arch", PackageManagerType.pacman),
    ("fedora", "", PackageManagerType.dnf),
    ("rocky", "rhel centos fedora", PackageManagerType.dnf)])
def test_detect(host, distro_id, like, expected):
    host(distro_id, like)
    assert detect_package_manager() == expected


def test_detect_from_path(host, caplog):
    host("gentoo", binaries=("dnf",))
    assert detect_package_manager() == PackageManagerType.dnf
    assert "Unknown distribution 'gentoo'" in caplog.text


def test_detect_unsupported(host):
    host("gentoo")
    with pytest.raises(CACSetupPackageError, match="Gentoo"):
        detect_package_manager()


def test_get_adapter(executor, host):
    host("arch")
    adapter = get_adapter(executor)
    assert isinstance(adapter, Pacman)
    assert "opensc" in adapter.packages
    assert isinstance(get_adapter(executor, PackageManagerType.dnf), Dnf)


def test_get_adapter_custom_packages(executor):
    adapter = get_adapter(executor, PackageManagerType.apt, ["pcscd"],
                          ["opensc"])
    assert adapter.packages == ["pcscd"]
    assert adapter.provider_packages == ["opensc"]
    # class defaults are not modified
    assert "wget" in Apt.packages


def test_missing(apt, executor):
    executor.installed = {"pcscd", "wget", "unzip"}
    assert apt.missing(apt.packages) == ["libnss3-tools", "opensc",
                                         "opensc-pkcs11"]
    assert executor.calls[0] == ["dpkg", "-s", "pcscd"]


@pytest.mark.parametrize("adapter_cls,sync,install", [
    (Apt, ["apt-get", "update"], ["apt-get", "install", "-y", "opensc"]),
    (Pacman, ["pacman", "-Sy"],
     ["pacman", "-S", "--needed", "--noconfirm", "opensc"]),
    (Dnf, ["dnf", "makecache"], ["dnf", "install", "-y", "opensc"])])
def test_commands(executor, adapter_cls, sync, install):
    adapter = adapter_cls(executor)
    adapter.sync()
    adapter.install(["opensc"])
    assert executor.calls == [sync, install]
    assert adapter.query("opensc")


def test_install_nothing(apt, executor):
    apt.install([])
    assert executor.calls == []
