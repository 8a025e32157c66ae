"""
This module contains unit tests for nssdb.py
"""
import stat
from pathlib import Path
from subprocess import CompletedProcess

import pytest

from CACSetup.enums import TrustFlag, Registration
from CACSetup.models.nssdb import NSSDatabase
from conftest import FILES_DIR


@pytest.fixture()
def db(tmp_path, executor):
    path = tmp_path.joinpath("nssdb")
    path.mkdir()
    return NSSDatabase(path, executor)


def test_trust_flags():
    assert TrustFlag.plain_ca.flags == "CT,,"
    assert TrustFlag.trusted_root.flags == "CT,C,C"


def test_reset_absent_files(db):
    assert db.reset() == []


def test_reset_stale_files(db):
    for name in ("cert9.db", "key4.db", "pkcs11.txt"):
        db.path.joinpath(name).write_text("stale")
    db.path.joinpath("cert8.db").write_text("legacy")
    assert db.reset() == ["cert9.db", "key4.db", "pkcs11.txt"]
    assert [p.name for p in db.path.iterdir()] == ["cert8.db"]


def test_init(db, executor):
    db.init()
    assert executor.calls == [["certutil", "-d", f"sql:{db.path}", "-N",
                               "--empty-password"]]
    assert db.exists()


def test_add_module_modutil(db, executor):
    db.init()
    db.add_module("OpenSC-PKCS11", "/usr/lib/opensc-pkcs11.so")
    assert executor.calls[-1] == ["modutil", "-dbdir", f"sql:{db.path}",
                                  "-add", "OpenSC-PKCS11", "-libfile",
                                  "/usr/lib/opensc-pkcs11.so", "-force"]
    assert db.pkcs11_txt.module("OpenSC-PKCS11")["library"] == \
        "/usr/lib/opensc-pkcs11.so"


def test_add_module_file(db, executor):
    """
    Writing pkcs11.txt directly ends with the same module entry as modutil and
    does not run any tool.
    """
    db.init()
    db.add_module("OpenSC-PKCS11", "/usr/lib/opensc-pkcs11.so",
                  Registration.file)
    assert not executor.called("modutil")
    modules = db.pkcs11_txt.modules()
    assert modules[0]["name"] == "NSS Internal PKCS #11 Module"
    assert modules[-1] == {"library": "/usr/lib/opensc-pkcs11.so",
                           "name": "OpenSC-PKCS11"}


def test_import_and_trust(db, executor):
    db.init()
    db.import_cert(db.path.joinpath("DoDRoot3.cer"), "DoDRoot3.cer")
    assert executor.calls[-1] == ["certutil", "-d", f"sql:{db.path}", "-A",
                                  "-t", "CT,,", "-n", "DoDRoot3.cer", "-i",
                                  str(db.path.joinpath("DoDRoot3.cer"))]
    db.set_trust("DoDRoot3.cer", TrustFlag.trusted_root)
    assert executor.calls[-1] == ["certutil", "-d", f"sql:{db.path}", "-M",
                                  "-t", "CT,C,C", "-n", "DoDRoot3.cer"]
    assert db.list_certs() == {"DoDRoot3.cer": "CT,C,C"}


def test_list_certs_parses_certutil_output(db):
    out = Path(FILES_DIR, "certutil_list.txt").read_text()

    class Listing:
        @staticmethod
        def run(cmd, **kwargs):
            return CompletedProcess(cmd, 0, stdout=out, stderr="")

    certs = NSSDatabase(db.path, Listing()).list_certs()
    assert certs == {"DoDRoot3.cer": "CT,C,C",
                     "DoDRoot4.cer": "CT,,",
                     "DOD EMAIL CA-59.cer": "CT,,",
                     "Personal Certificate": "u,u,u"}


def test_fix_permissions(db, executor, user):
    _, uid, gid, _ = user
    db.init()
    db.path.joinpath("cert9.db").chmod(0o644)
    db.fix_permissions(uid, gid)
    for f in db.files:
        st = f.stat()
        assert stat.S_IMODE(st.st_mode) == 0o600
        assert (st.st_uid, st.st_gid) == (uid, gid)
