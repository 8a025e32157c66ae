import logging

from fixtures import *  # noqa: F401
from fixtures import DIR_PATH, FILES_DIR  # noqa: F401

LOGGER = logging.getLogger("pytest-custom")


def pytest_sessionfinish(session, exitstatus):
    """
    Change behaviour: if no tests found (exit status == 5), for us, it is not a
    fail.
    """
    if exitstatus == 5:
        LOGGER.info("Changing exit status from 5 to 0")
        session.exitstatus = 0
